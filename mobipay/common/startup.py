"""Startup-time helpers for safe config logging."""

import os

from mobipay.common.config import CommonSettings
from mobipay.common.logging import logger


_SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN", "USER_ID", "CLIENT_ID")


def _safe_env(name: str) -> str:
    """Return env value with redaction for credential-like variable names."""

    value = os.getenv(name)
    if value is None or value == "":
        return "<unset>"
    if any(marker in name for marker in _SECRET_MARKERS):
        return "<redacted>"
    return value


def provider_modes(config: CommonSettings) -> dict[str, str]:
    """Say per carrier whether payments go live or to the simulator."""

    return {
        "mtn": "live" if config.mtn_credentials().configured else "simulated",
        "orange": "live" if config.orange_credentials().configured else "simulated",
    }


def log_startup_config(service_name: str, keys: list[str], config: CommonSettings | None = None) -> None:
    """Log selected startup config keys and carrier modes for troubleshooting."""

    startup = {"service": service_name}
    for key in keys:
        startup[key] = _safe_env(key)
    if config is not None:
        startup["provider_modes"] = provider_modes(config)
    logger.info("startup_config=%s", startup)
