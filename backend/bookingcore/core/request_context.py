from __future__ import annotations

from contextvars import ContextVar, Token
import logging
from typing import Optional

from .config import settings

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")
_organization_id_var: ContextVar[str] = ContextVar("organization_id", default="")

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "[req=%(request_id)s org=%(organization_id)s] %(message)s"
)


def set_request_id(request_id: Optional[str]) -> Token[str]:
    return _request_id_var.set(request_id or "")


def reset_request_id(token: Token[str]) -> None:
    _request_id_var.reset(token)


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    value = _request_id_var.get()
    return value if value else default


def set_organization_id(organization_id: Optional[str]) -> Token[str]:
    return _organization_id_var.set(organization_id or "")


def reset_organization_id(token: Token[str]) -> None:
    _organization_id_var.reset(token)


def get_organization_id(default: Optional[str] = None) -> Optional[str]:
    value = _organization_id_var.get()
    return value if value else default


class RequestContextFilter(logging.Filter):
    """Stamp every record with the request and tenant currently in scope."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id("no-request")
        if not hasattr(record, "organization_id"):
            record.organization_id = get_organization_id("-")
        return True


def attach_request_context_filter(logger: Optional[logging.Logger] = None) -> None:
    target = logger or logging.getLogger()
    for handler in target.handlers:
        if not any(isinstance(f, RequestContextFilter) for f in handler.filters):
            handler.addFilter(RequestContextFilter())


def configure_logging(level: Optional[str] = None) -> None:
    """Install the root handler format and the request-context filter."""
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT)
    attach_request_context_filter()
