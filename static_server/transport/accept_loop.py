"""Main connection acceptance loop."""

import logging
import socket
import threading
from http import HTTPStatus
from typing import Optional

from static_server.bootstrap.certificates import CertificateBundle
from static_server.bootstrap.config import Configuration, ServerConfig
from static_server.bootstrap.socket_factory import create_server_socket
from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.lifecycle.state import ServerLifecycle
from static_server.pipeline.assembly import build_pipeline
from static_server.pipeline.io import send_error_status
from static_server.transport.context import WorkerContext
from static_server.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.transport.accept"), {}
)


def listening_url(configuration: Configuration, tls_enabled: bool) -> str:
    scheme = "https" if tls_enabled else "http"
    return f"{scheme}://{configuration.host_name}:{configuration.port_number}"


def log_startup_banner(configuration: Configuration, tls_enabled: bool) -> None:
    url = listening_url(configuration, tls_enabled)
    ACCEPT_LOGGER.info(
        "static_server started.\n"
        f"\t▻ listening on:\t\t{url}\n"
        f"\t▻ serving content from:\t{configuration.root_folder}\n"
        f"\t▻ environment:\t\t{configuration.environment}",
        extra={
            "event": "server_listening",
            "url_base": url,
            "host": configuration.host_name,
            "port": configuration.port_number,
            "root_folder": configuration.root_folder,
            "environment": configuration.environment,
            "tls": tls_enabled,
        },
    )


def _reject_while_draining(client_socket: socket.socket) -> None:
    try:
        send_error_status(client_socket, HTTPStatus.SERVICE_UNAVAILABLE)
    except OSError:
        pass
    client_socket.close()


def run_server(
    configuration: Configuration,
    bundle: Optional[CertificateBundle],
    lifecycle: ServerLifecycle,
    server_config: Optional[ServerConfig] = None,
) -> None:
    """Listen, hand each connection to a worker thread, then drain."""
    server_config = server_config or ServerConfig()
    server_socket = create_server_socket(configuration, bundle)
    log_startup_banner(configuration, bundle is not None)

    handler_context = WorkerContext(
        configuration=configuration,
        pipeline=build_pipeline(configuration),
        server_config=server_config,
        lifecycle=lifecycle,
    )

    try:
        while not lifecycle.is_draining():
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle.is_draining():
                    break
                ACCEPT_LOGGER.warning(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if lifecycle.is_draining():
                _reject_while_draining(client_socket)
                break

            thread = threading.Thread(
                target=handle_client,
                args=(client_socket, client_address, handler_context),
                daemon=False,
            )
            thread.start()
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info(
            "Waiting for active connections to complete",
            extra={
                "event": "shutdown_waiting",
                "shutdown_grace_seconds": server_config.shutdown_grace_seconds,
            },
        )
        lifecycle.wait_for_workers(server_config.shutdown_grace_seconds)
        ACCEPT_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
