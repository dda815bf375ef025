"""Worker thread logic for handling individual client connections."""

import logging
import socket
import ssl
import threading
from http import HTTPStatus
from typing import Optional

from static_server.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from static_server.domain.http_types import HttpRequest, RequestContext, should_close
from static_server.pipeline.io import (
    RequestEntityTooLarge,
    receive_request,
    send_error_status,
    send_response,
)
from static_server.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.transport.worker"), {}
)


def _read_request(
    client_socket: socket.socket, buffer: bytes, client_ip: str
) -> tuple[Optional[HttpRequest], bytes]:
    """Read one request, answering malformed or oversized ones directly."""
    try:
        return receive_request(client_socket, buffer)
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request exceeded size limit",
            extra={"event": "request_too_large", "client": client_ip},
        )
        send_error_status(client_socket, HTTPStatus.REQUEST_ENTITY_TOO_LARGE)
    except ValueError:
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={"event": "malformed_request", "client": client_ip},
        )
        send_error_status(client_socket, HTTPStatus.BAD_REQUEST)
    return None, b""


def serve_connection(
    client_socket: socket.socket, client_ip: str, context: WorkerContext
) -> None:
    """Run requests from one connection through the pipeline until it closes."""
    buffer = b""
    while True:
        if context.lifecycle is not None and context.lifecycle.is_draining():
            send_error_status(client_socket, HTTPStatus.SERVICE_UNAVAILABLE)
            return

        set_correlation_id(generate_correlation_id())
        request, buffer = _read_request(client_socket, buffer, client_ip)
        if request is None:
            return

        request_context = context.pipeline.handle(RequestContext(request, client_ip))
        close_connection = should_close(request)
        send_response(client_socket, request_context, close_connection)
        clear_correlation_id()
        if close_connection:
            return


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Serve a client socket and always release it afterwards."""
    current_thread = threading.current_thread()
    lifecycle = context.lifecycle
    if lifecycle is not None:
        lifecycle.register_worker(current_thread)
    client_ip = client_address[0]
    client_socket.settimeout(context.server_config.socket_timeout)

    try:
        if isinstance(client_socket, ssl.SSLSocket):
            client_socket.do_handshake()
        serve_connection(client_socket, client_ip, context)
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.debug(
            "Client connection ended",
            extra={
                "event": "connection_error",
                "client": client_ip,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_ip,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
    finally:
        if lifecycle is not None:
            lifecycle.cleanup_worker(current_thread)
        try:
            client_socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass
        client_socket.close()
        clear_correlation_id()
