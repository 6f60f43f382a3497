"""JSON log lines stamped with the payment being processed.

Every record carries the service, the inbound correlation id, the payment
reference and the carrier handling it. Fallback warnings add `fallback_kind`
and `fallback_error` as their own JSON fields.
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from pythonjsonlogger.json import JsonFormatter

from mobipay.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
payment_reference_ctx: ContextVar[str] = ContextVar("payment_reference", default="")
provider_ctx: ContextVar[str] = ContextVar("provider", default="")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s %(payment_reference)s %(provider)s %(message)s"

# httpx logs every outbound carrier call at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")


class ContextFilter(logging.Filter):
    """Copy the payment context vars onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.payment_reference = payment_reference_ctx.get()
        record.provider = provider_ctx.get()
        return True


@contextmanager
def payment_context(reference: str, provider: str = "") -> Iterator[None]:
    """Bind `reference` and `provider` to log lines emitted inside the block."""

    reference_token = payment_reference_ctx.set(reference)
    provider_token = provider_ctx.set(provider)
    try:
        yield
    finally:
        provider_ctx.reset(provider_token)
        payment_reference_ctx.reset(reference_token)


def build_formatter() -> JsonFormatter:
    return JsonFormatter(
        LOG_FORMAT,
        rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
    )


def configure_logging(level: str | None = None) -> None:
    """Send JSON lines to stdout from the root logger."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    handler.setFormatter(build_formatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level or settings.log_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


logger = logging.getLogger("mobipay")
