"""HTTP input/output: request parsing and response serialization."""

import logging
import socket
import urllib.parse
from email.utils import formatdate
from http import HTTPStatus
from typing import Iterable, Optional, Tuple

from static_server.bootstrap.config import HEADER_DELIMITER, MAX_BODY_BYTES
from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.http_types import FileBody, HttpRequest, RequestContext
from static_server.handlers.file_handler import stream_file

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("static_server.io"), {})

SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")
BODYLESS_STATUSES = (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)


class RequestEntityTooLarge(Exception):
    """Raised when a request declares a body larger than the server accepts."""


def parse_headers(lines: Iterable[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        name, separator, value = line.partition(":")
        if separator and name.strip():
            parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str, str, str]:
    """Return method, raw target, decoded path and version."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc
    if version not in SUPPORTED_VERSIONS or not method:
        raise ValueError("Unsupported request line")

    parsed_target = urllib.parse.urlsplit(target)
    path = urllib.parse.unquote(parsed_target.path)
    if not path.startswith("/"):
        raise ValueError("Request target must be an absolute path")
    return method, target, path, version


def determine_content_length(headers: dict[str, str]) -> int:
    """Validate and return the declared Content-Length for the request."""
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0:
        raise ValueError("Negative Content-Length")
    if content_length > MAX_BODY_BYTES:
        raise RequestEntityTooLarge
    return content_length


def receive_request(
    client_socket: socket.socket, buffer: bytes
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes from the socket until a complete request is available."""
    while HEADER_DELIMITER not in buffer:
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        buffer += chunk
        if len(buffer) > MAX_BODY_BYTES:
            raise RequestEntityTooLarge

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("iso-8859-1").split("\r\n")
    method, target, path, version = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])
    content_length = determine_content_length(headers)

    while len(remainder) < content_length:
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        remainder += chunk

    body = remainder[:content_length]
    leftover = remainder[content_length:]
    IO_LOGGER.debug("Parsed request", extra={"method": method, "path": path})
    return HttpRequest(method, target, path, version, headers, body), leftover


def status_line(status: int) -> str:
    return f"HTTP/1.1 {int(status)} {HTTPStatus(status).phrase}"


def _serialize_head(status: int, headers: dict[str, str]) -> bytes:
    lines = [status_line(status)]
    lines.extend(f"{name}: {value}" for name, value in headers.items())
    return "\r\n".join(lines).encode("latin-1") + HEADER_DELIMITER


def finalize_response(context: RequestContext, close_connection: bool) -> dict[str, str]:
    """Fill in the default body and the framing headers of the response.

    A response without a body gets its reason phrase as plain text, except
    for statuses that never carry one.
    """
    status = HTTPStatus(int(context.status))
    if status in BODYLESS_STATUSES:
        context.body = None
        for name in ("Content-Type", "Content-Length", "Transfer-Encoding"):
            context.remove_header(name)
    elif context.body is None:
        context.body = status.phrase.encode()
        context.set_header("Content-Type", "text/plain; charset=utf-8")

    if isinstance(context.body, FileBody):
        context.set_header("Content-Length", str(context.body.size))
    elif context.body is not None:
        context.set_header("Content-Length", str(len(context.body)))

    context.set_header("Date", formatdate(usegmt=True))
    if close_connection:
        context.set_header("Connection", "close")
    return dict(context.headers)


def send_response(
    client_socket: socket.socket, context: RequestContext, close_connection: bool
) -> None:
    """Serialize the response held by ``context`` and send it."""
    headers = finalize_response(context, close_connection)
    head = _serialize_head(context.status, headers)
    body = context.body

    if context.method == "HEAD" or body is None:
        client_socket.sendall(head)
    elif isinstance(body, FileBody):
        client_socket.sendall(head)
        for chunk in stream_file(body.path):
            client_socket.sendall(chunk)
    else:
        client_socket.sendall(head + body)

    IO_LOGGER.debug(
        "Sent response",
        extra={"status_code": int(context.status), "path": context.path},
    )


def send_error_status(client_socket: socket.socket, status: int) -> None:
    """Send a bare plain-text error response and mark the connection closed."""
    reason = HTTPStatus(status).phrase.encode()
    headers = {
        "Content-Type": "text/plain; charset=utf-8",
        "Content-Length": str(len(reason)),
        "Date": formatdate(usegmt=True),
        "Connection": "close",
    }
    client_socket.sendall(_serialize_head(status, headers) + reason)
