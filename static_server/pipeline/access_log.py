"""Access logging stage."""

import logging

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.http_types import RequestContext
from static_server.pipeline.base import NextStage, Stage

ACCESS_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.pipeline.access"), {}
)


class AccessLogStage(Stage):
    """Log ``<ip> <status> <method> <url>`` once the response is final."""

    def __call__(self, context: RequestContext, call_next: NextStage) -> None:
        call_next()
        self._log(context)

    def on_bypass(self, context: RequestContext) -> None:
        self._log(context)

    def _log(self, context: RequestContext) -> None:
        status = int(context.status)
        ACCESS_LOGGER.info(
            f"{context.client_ip} {status} {context.method} {context.url}",
            extra={
                "event": "access",
                "client": context.client_ip,
                "status_code": status,
                "method": context.method,
                "url": context.url,
            },
        )
