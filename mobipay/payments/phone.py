"""Cameroon mobile numbering-plan checks for the supported carriers."""

import re
from enum import Enum


COUNTRY_CODE = "237"


class Carrier(str, Enum):
    MTN = "MTN"
    ORANGE = "ORANGE"


# MTN: 67X / 68X, Orange: 69X, all behind +237.
_PATTERNS: dict[Carrier, re.Pattern[str]] = {
    Carrier.MTN: re.compile(r"^\+237(67\d|68\d)\d{6}$"),
    Carrier.ORANGE: re.compile(r"^\+237(69\d)\d{6}$"),
}

_FORMAT_HINTS: dict[Carrier, str] = {
    Carrier.MTN: "Invalid MTN phone number format. Use +237 67X XXX XXX or +237 68X XXX XXX",
    Carrier.ORANGE: "Invalid Orange phone number format. Use +237 69X XXX XXX",
}

_WHITESPACE = re.compile(r"\s+")


def _compact(phone: str) -> str:
    return _WHITESPACE.sub("", phone)


def validate(phone: str, carrier: Carrier) -> bool:
    """Return True when `phone` belongs to `carrier`'s numbering plan."""

    if not isinstance(phone, str):
        return False
    pattern = _PATTERNS.get(carrier)
    if pattern is None:
        return False
    return pattern.match(_compact(phone)) is not None


def normalize_msisdn(phone: str) -> str:
    """Return the country-code-prefixed subscriber id without `+`."""

    compact = _compact(phone)
    if compact.startswith("+" + COUNTRY_CODE):
        return compact[1:]
    if compact.startswith(COUNTRY_CODE):
        return compact
    return COUNTRY_CODE + compact


def format_hint(carrier: Carrier) -> str:
    return _FORMAT_HINTS[carrier]
