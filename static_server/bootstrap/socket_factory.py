"""Socket creation and TLS configuration."""

import logging
import socket
import ssl
import sys
from typing import Optional

from static_server.bootstrap.certificates import CertificateBundle
from static_server.bootstrap.config import Configuration
from static_server.domain.correlation_id import CorrelationLoggerAdapter

SOCKET_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.bootstrap.socket"), {}
)

ACCEPT_TIMEOUT_SECONDS = 0.5


def create_tls_context(bundle: CertificateBundle) -> ssl.SSLContext:
    tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    tls_context.load_cert_chain(bundle.certificate_path, bundle.private_key_path)
    return tls_context


def create_server_socket(
    configuration: Configuration, bundle: Optional[CertificateBundle]
) -> socket.socket:
    """Bind the listening socket exclusively, wrapping it in TLS when possible.

    Bind and TLS failures are fatal: they are logged and the process exits.
    """
    address = (configuration.host_name, configuration.port_number)
    try:
        server_socket = socket.create_server(address, reuse_port=False)
    except OSError as error:
        SOCKET_LOGGER.critical(
            f"Unable to listen on {configuration.host_name}:{configuration.port_number}",
            extra={
                "event": "bind_failed",
                "host": configuration.host_name,
                "port": configuration.port_number,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
        sys.exit(1)
    server_socket.settimeout(ACCEPT_TIMEOUT_SECONDS)

    if bundle is not None:
        try:
            tls_context = create_tls_context(bundle)
            server_socket = tls_context.wrap_socket(
                server_socket, server_side=True, do_handshake_on_connect=False
            )
        except ssl.SSLError as error:
            server_socket.close()
            SOCKET_LOGGER.critical(
                "Failed to load TLS certificates",
                extra={
                    "event": "tls_failed",
                    "certificate_name": str(bundle.certificate_path),
                    "error_type": type(error).__name__,
                },
                exc_info=True,
            )
            sys.exit(1)
    return server_socket
