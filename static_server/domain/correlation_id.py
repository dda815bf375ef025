"""Per-request correlation ids and the component-aware logger adapter."""

import contextvars
import logging
import uuid
from typing import Any, MutableMapping, Optional

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    """Return a short random id identifying one request in the logs."""
    return uuid.uuid4().hex[:12]


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Inject ``correlation_id`` and ``component`` into every log record.

    The component is the logger name relative to the project logger, so
    ``static_server.pipeline.access`` is reported as ``pipeline.access``.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})

        correlation_id = get_correlation_id()
        extra["correlation_id"] = correlation_id if correlation_id is not None else "-"

        logger_name = self.logger.name
        if logger_name.startswith("static_server."):
            extra["component"] = logger_name[len("static_server.") :]
        else:
            extra["component"] = logger_name

        kwargs["extra"] = extra
        return msg, kwargs
