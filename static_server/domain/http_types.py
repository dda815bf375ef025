"""Request, response body, and per-request context types."""

from dataclasses import dataclass, field
from http import HTTPStatus
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request."""

    method: str
    target: str
    path: str
    version: str
    headers: dict[str, str]
    body: bytes = b""


@dataclass(frozen=True)
class FileBody:
    """A response body streamed from disk, described by its stat result."""

    path: Path
    size: int
    mtime: float


ResponseBody = Union[bytes, FileBody, None]


@dataclass
class RequestContext:
    """Mutable state shared by the pipeline stages for a single request.

    ``status`` starts at 404 and only changes once a stage produces a
    response. ``finished`` is set by a stage that has produced the final
    response; no later stage runs once it is set.
    """

    request: HttpRequest
    client_ip: str
    status: int = HTTPStatus.NOT_FOUND
    headers: dict[str, str] = field(default_factory=dict)
    body: ResponseBody = None
    finished: bool = False

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def url(self) -> str:
        return self.request.target

    def get_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for existing, value in self.headers.items():
            if existing.lower() == lowered:
                return value
        return None

    def set_header(self, name: str, value: str) -> None:
        """Set a response header, replacing any value under another casing."""
        self.remove_header(name)
        self.headers[name] = value

    def remove_header(self, name: str) -> None:
        lowered = name.lower()
        for existing in [key for key in self.headers if key.lower() == lowered]:
            del self.headers[existing]

    def redirect(self, location: str) -> None:
        """Turn the response into a 302 pointing at ``location``."""
        encoded = quote(location, safe="/%:@!$&'()*+,;=-._~")
        self.status = HTTPStatus.FOUND
        self.set_header("Location", encoded)
        self.set_header("Content-Type", "text/plain; charset=utf-8")
        self.body = f"Redirecting to {encoded}.".encode()
        self.finished = True


def should_close(request: HttpRequest) -> bool:
    """Determine whether the connection should be closed after responding."""
    connection = request.headers.get("connection", "").lower()
    if connection == "close":
        return True
    return request.version == "HTTP/1.0" and connection != "keep-alive"
