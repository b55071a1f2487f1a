"""Correlation IDs for following one booking decision through the logs.

A request ID lives in a ContextVar for the duration of a create, update or
cancel call. ``RequestIdFilter`` copies it onto log records; ``load_config``
installs the filter on the root handlers and puts ``[%(request_id)s]`` in
the log format, so availability, pricing and booking lines of one request
share the same tag.

Usage:
    from clubbooking.logging_context import request_context

    with request_context("REQ-3F9A1C20"):
        booking_service.create_booking(request, context)
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterable, Iterator, Optional

NO_REQUEST_ID = "-"

_request_id: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST_ID)


def new_request_id() -> str:
    """Fresh ID in the ``REQ-XXXXXXXX`` form used by the CLI."""
    return f"REQ-{uuid.uuid4().hex[:8].upper()}"


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_context(request_id: Optional[str] = None) -> Iterator[str]:
    """Tag log records with ``request_id`` (or a new one) until the block exits."""
    token = _request_id.set(request_id or new_request_id())
    try:
        yield _request_id.get()
    finally:
        _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Stamps ``record.request_id`` unless an earlier filter already did."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def install_request_id_filter(handlers: Iterable[logging.Handler]) -> None:
    """Attach one RequestIdFilter to each handler that lacks it."""
    for handler in handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


def get_request_logger(name: str) -> logging.Logger:
    """Module logger whose records carry ``request_id`` even without root handlers."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
