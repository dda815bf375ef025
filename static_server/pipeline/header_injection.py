"""Injection of configured response headers."""

from typing import Mapping

from static_server.domain.http_types import RequestContext
from static_server.pipeline.base import NextStage, Stage


class HeaderInjectionStage(Stage):
    """Overwrite the response with every configured header name and value.

    Responses that never reach this stage (redirects, 500s) still get the
    headers through ``on_bypass``.
    """

    def __init__(self, headers: Mapping[str, str]):
        self.headers = dict(headers)

    def __call__(self, context: RequestContext, call_next: NextStage) -> None:
        call_next()
        self._apply(context)

    def on_bypass(self, context: RequestContext) -> None:
        self._apply(context)

    def _apply(self, context: RequestContext) -> None:
        for name, value in self.headers.items():
            context.set_header(name, value)
