"""Static file serving: the terminal stage of the pipeline."""

import logging
import mimetypes
import os
from email.utils import formatdate
from http import HTTPStatus
from pathlib import Path
from typing import Iterator

from static_server.bootstrap.config import ALLOWED_METHODS
from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.http_types import FileBody, RequestContext
from static_server.domain.sandbox import ForbiddenPath, is_hidden, resolve_sandbox_path
from static_server.pipeline.base import NextStage, Stage

FILE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.handlers.file"), {}
)

INDEX_DOCUMENT = "index.html"
DEFAULT_MEDIA_TYPE = "application/octet-stream"
CACHE_CONTROL = "max-age=0"


def stream_file(filepath: Path, chunk_size: int = 65536) -> Iterator[bytes]:
    """Yield file contents in fixed-size chunks for streaming responses."""
    if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
        FILE_LOGGER.debug(
            "File streaming started",
            extra={"event": "file_streaming_started", "path": filepath.as_posix()},
        )
    with open(filepath, "rb") as file_handle:
        while True:
            chunk = file_handle.read(chunk_size)
            if not chunk:
                break
            yield chunk


def content_type_for_path(filepath: Path) -> str:
    mime_type, _ = mimetypes.guess_type(filepath.name)
    return mime_type or DEFAULT_MEDIA_TYPE


class StaticFileStage(Stage):
    """Serve files below ``root_folder``; folders serve their ``index.html``.

    Traversal outside the root and unreadable files yield 403, missing and
    hidden files yield 404, and methods other than GET/HEAD yield 405.
    ``call_next`` is never invoked: this stage always ends the chain.
    """

    def __init__(self, root_folder: str, index_document: str = INDEX_DOCUMENT):
        self.root_folder = root_folder
        self.index_document = index_document

    def __call__(self, context: RequestContext, call_next: NextStage) -> None:
        if context.method not in ALLOWED_METHODS:
            context.status = HTTPStatus.METHOD_NOT_ALLOWED
            context.set_header("Allow", ", ".join(ALLOWED_METHODS))
            return

        if "\x00" in context.path:
            context.status = HTTPStatus.BAD_REQUEST
            return

        try:
            resolved_path = resolve_sandbox_path(self.root_folder, context.path)
        except ForbiddenPath:
            FILE_LOGGER.warning(
                "Forbidden path access blocked",
                extra={
                    "event": "forbidden_path",
                    "client": context.client_ip,
                    "path": context.path,
                },
            )
            context.status = HTTPStatus.FORBIDDEN
            return

        if is_hidden(context.path):
            return

        if resolved_path.is_dir():
            resolved_path = resolved_path / self.index_document

        try:
            stats = resolved_path.stat()
        except (FileNotFoundError, NotADirectoryError):
            return
        except PermissionError:
            context.status = HTTPStatus.FORBIDDEN
            return

        if not resolved_path.is_file():
            return
        if not os.access(resolved_path, os.R_OK):
            context.status = HTTPStatus.FORBIDDEN
            return

        context.status = HTTPStatus.OK
        context.body = FileBody(resolved_path, stats.st_size, stats.st_mtime)
        context.set_header("Content-Type", content_type_for_path(resolved_path))
        context.set_header("Content-Length", str(stats.st_size))
        context.set_header("Last-Modified", formatdate(stats.st_mtime, usegmt=True))
        context.set_header("Cache-Control", CACHE_CONTROL)

        if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
            FILE_LOGGER.debug(
                "File resolved",
                extra={"event": "file_resolved", "path": resolved_path.as_posix()},
            )
