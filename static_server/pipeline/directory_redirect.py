"""Redirect folder paths that lack a trailing slash."""

import logging
import os
import stat

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.http_types import RequestContext
from static_server.pipeline.base import NextStage, Stage

REDIRECT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.pipeline.redirect"), {}
)


class DirectoryRedirectStage(Stage):
    """Answer ``/folder`` with a 302 to ``/folder/`` when it is a directory.

    Only paths without a ``.`` and without a trailing ``/`` are checked.
    Detection is best effort: stat failures other than a missing path are
    logged and the request continues down the chain.
    """

    def __init__(self, root_folder: str):
        self.root_folder = root_folder

    def __call__(self, context: RequestContext, call_next: NextStage) -> None:
        path = context.path
        if "." not in path and not path.endswith("/"):
            try:
                stats = os.stat(f"{self.root_folder}{path}")
            except (FileNotFoundError, NotADirectoryError):
                stats = None
            except (OSError, ValueError) as error:
                stats = None
                REDIRECT_LOGGER.error(
                    "Unable to stat requested path",
                    extra={
                        "event": "directory_stat_failed",
                        "path": path,
                        "error_type": type(error).__name__,
                    },
                    exc_info=True,
                )

            if stats is not None and stat.S_ISDIR(stats.st_mode):
                context.redirect(f"{path}/")
                return

        call_next()
