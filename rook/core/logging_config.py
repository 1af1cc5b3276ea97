"""
Logging configuration.

WHAT: Configures stdlib logging for the API process and tags every record
with the current request id.

WHY: Bulk actions and the device action worker log per-target outcomes;
the request id ties those lines back to the HTTP call that caused them.

HOW: basicConfig with a fixed format plus a Filter that reads the
RequestContext ContextVar. Records emitted outside a request (scheduler
jobs) carry "-" instead.
"""

import logging

from rook.core.config import settings
from rook.middleware.request_context import get_request_context


LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(request_id)s] %(name)s: %(message)s"


class RequestIdFilter(logging.Filter):
    """Inject request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_request_context()
        record.request_id = ctx.request_id if ctx else "-"
        return True


def configure_logging() -> None:
    """
    Configure root logging once per process.

    Safe to call repeatedly; basicConfig is a no-op once handlers exist,
    and the filter is only attached to handlers that lack it.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())

    # WHY: SQL echo is controlled by DEBUG on the engine, not by LOG_LEVEL
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
