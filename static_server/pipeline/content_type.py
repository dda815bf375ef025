"""Content-Type adjustments based on the requested file name extension."""

from typing import Mapping, Optional

from static_server.domain.http_types import RequestContext
from static_server.pipeline.base import NextStage, Stage

EXTENSIONLESS_MEDIA_TYPE = "text/plain"


def file_name_extension(path: str) -> Optional[str]:
    """Return the text after the last ``.`` of ``path``, if it has one."""
    if "." not in path:
        return None
    return path[path.rindex(".") + 1 :]


class ContentTypeStage(Stage):
    """Apply extension overrides after the file has been resolved.

    Index requests (paths ending in ``/``) are left alone. Extensionless
    paths are served as ``text/plain``; configured extensions (matched
    exactly, case-sensitively) replace whatever type was guessed.
    """

    def __init__(self, extension_media_types: Mapping[str, str]):
        self.extension_media_types = dict(extension_media_types)

    def __call__(self, context: RequestContext, call_next: NextStage) -> None:
        call_next()

        if context.path.endswith("/"):
            return

        extension = file_name_extension(context.path)
        if extension is None:
            context.set_header("Content-Type", EXTENSIONLESS_MEDIA_TYPE)
        elif extension in self.extension_media_types:
            context.set_header("Content-Type", self.extension_media_types[extension])
