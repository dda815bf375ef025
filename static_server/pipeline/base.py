"""Stage interface and the ordered pipeline that chains stages together.

Stages wrap each other like layers of an onion: a stage may work on the
context before calling ``call_next`` (which runs every later stage and
returns), after it, or not call it at all to short-circuit the chain.

    Pipeline([AccessLogStage(), ..., StaticFileStage(root)])

    request  ──► access log ──► redirect ──► ... ──► static file
    response ◄── access log ◄── redirect ◄── ... ◄──┘
"""

import logging
from abc import ABC, abstractmethod
from http import HTTPStatus
from typing import Callable, Sequence

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.http_types import RequestContext

PIPELINE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.pipeline"), {}
)

NextStage = Callable[[], None]


class Stage(ABC):
    """One unit of the request-handling chain."""

    @abstractmethod
    def __call__(self, context: RequestContext, call_next: NextStage) -> None:
        """Process ``context``, calling ``call_next`` to run the later stages."""

    def on_bypass(self, context: RequestContext) -> None:
        """Handle a final response this stage did not get to process.

        Called once the chain is done when ``__call__`` never ran or did not
        return normally: an earlier stage ended the chain, or a stage failed
        and the response was replaced with a 500.
        """


class Pipeline:
    """Runs a fixed, ordered list of stages for each request.

    Stages hold no per-request state, so one pipeline is shared by every
    worker thread.
    """

    def __init__(self, stages: Sequence[Stage]):
        self._stages = tuple(stages)

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    def _dispatch(self, context: RequestContext, index: int, completed: set[int]) -> None:
        if index >= len(self._stages) or context.finished:
            return
        stage = self._stages[index]
        stage(context, lambda: self._dispatch(context, index + 1, completed))
        completed.add(index)

    def handle(self, context: RequestContext) -> RequestContext:
        """Run every stage against ``context`` and return it.

        An exception escaping a stage is logged and replaces the response
        with a 500. Stages that did not complete are then told about the
        final response through ``Stage.on_bypass``.
        """
        completed: set[int] = set()
        try:
            self._dispatch(context, 0, completed)
        except Exception as error:  # pylint: disable=broad-except
            PIPELINE_LOGGER.error(
                f"{context.client_ip} {context.method} {context.url}",
                extra={
                    "event": "pipeline_error",
                    "client": context.client_ip,
                    "method": context.method,
                    "url": context.url,
                    "error_type": type(error).__name__,
                },
                exc_info=True,
            )
            context.status = HTTPStatus.INTERNAL_SERVER_ERROR
            context.headers.clear()
            context.body = None
            context.finished = True
            completed.clear()

        for index, stage in enumerate(self._stages):
            if index not in completed:
                stage.on_bypass(context)
        return context
