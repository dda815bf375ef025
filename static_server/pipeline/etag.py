"""Entity tag computation for outgoing responses."""

import base64
import hashlib
from typing import Optional

from static_server.domain.http_types import FileBody, RequestContext, ResponseBody
from static_server.pipeline.base import NextStage, Stage


def compute_etag(body: ResponseBody) -> Optional[str]:
    """Return a weak tag from size and mtime for files, else a strong hash."""
    if body is None:
        return None
    if isinstance(body, FileBody):
        mtime_ms = int(body.mtime * 1000)
        return f'W/"{body.size:x}-{mtime_ms:x}"'
    digest = base64.b64encode(hashlib.sha1(body).digest()).decode("ascii").rstrip("=")
    return f'"{len(body):x}-{digest}"'


class ETagStage(Stage):
    """Set ``ETag`` on successful responses that have a body."""

    def __call__(self, context: RequestContext, call_next: NextStage) -> None:
        call_next()

        if context.body is None or context.get_header("ETag") is not None:
            return
        if not 200 <= int(context.status) < 300:
            return

        etag = compute_etag(context.body)
        if etag is not None:
            context.set_header("ETag", etag)
