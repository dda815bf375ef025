"""Static file server entry point.

Usage: ``python main.py [root_folder] [host_name] [port_number]
[certificate_name] [headers_json] [file_name_extension_media_types_json]``
"""

import logging
import signal
import sys

from static_server.bootstrap.certificates import (
    CertificateIOError,
    load_certificate_bundle,
)
from static_server.bootstrap.config import (
    ServerConfig,
    load_file_settings,
    parse_cli_args,
    resolve_configuration,
    resolve_environment,
)
from static_server.bootstrap.logging_setup import configure_logging
from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.lifecycle.state import ServerLifecycle
from static_server.transport.accept_loop import run_server

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("static_server.server"), {})


def main(argv=None) -> None:
    """Resolve configuration, load certificates and serve until terminated."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    environment = resolve_environment()
    configure_logging(
        args.log_level,
        args.log_destination,
        environment=environment,
        use_json=args.log_format == "json",
    )

    configuration = resolve_configuration(
        args, load_file_settings(args.config_file), environment
    )

    try:
        bundle = load_certificate_bundle(configuration.certificate_name)
    except CertificateIOError as error:
        SERVER_LOGGER.critical(
            "Unable to load certificates",
            extra={
                "event": "certificate_error",
                "certificate_name": configuration.certificate_name,
                "error_type": type(error.__cause__ or error).__name__,
            },
            exc_info=True,
        )
        sys.exit(1)

    server_config = ServerConfig(
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
    )
    lifecycle = ServerLifecycle()

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info("Received shutdown signal", extra={"signal": signum})
        lifecycle.begin_draining()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    run_server(configuration, bundle, lifecycle, server_config)


if __name__ == "__main__":
    main()
