"""Server configuration: CLI parsing, config file loading, and precedence."""

import argparse
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from static_server.domain.correlation_id import CorrelationLoggerAdapter

CONFIG_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.bootstrap.config"), {}
)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


APPLICATION_DIRECTORY = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_FILE = APPLICATION_DIRECTORY / "static_server.json"

DEFAULT_ROOT_FOLDER = "."
DEFAULT_HOST_NAME = "localhost"
DEFAULT_PORT_NUMBER = 8020
DEFAULT_CERTIFICATE_NAME = "localhost"

DEFAULT_SOCKET_TIMEOUT = _env_int("STATIC_SERVER_SOCKET_TIMEOUT", 60)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("STATIC_SERVER_SHUTDOWN_GRACE_SECONDS", 30)

MAX_BODY_BYTES = 1024 * 1024
HEADER_DELIMITER = b"\r\n\r\n"
ALLOWED_METHODS = ("GET", "HEAD")

ENVIRONMENTS = ("development", "production")
DEFAULT_ENVIRONMENT = "development"

PRIVILEGED_PORTS = (80, 443)
UNPRIVILEGED_PORT_RANGE = (1024, 65535)


class ConfigFileError(Exception):
    """Raised when the JSON configuration file cannot be used."""


@dataclass(frozen=True)
class Configuration:
    """Settings resolved once at startup and shared read-only afterwards."""

    certificate_name: str
    environment: str
    extension_media_types: Mapping[str, str]
    headers: Mapping[str, str]
    host_name: str
    port_number: int
    root_folder: str


@dataclass(frozen=True)
class ServerConfig:
    """Connection handling settings that are not part of the served site."""

    socket_timeout: int = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS


def resolve_environment(value: Optional[str] = None) -> str:
    """Return ``development`` or ``production`` from ``STATIC_SERVER_ENV``."""
    if value is None:
        value = os.getenv("STATIC_SERVER_ENV")
    return value if value in ENVIRONMENTS else DEFAULT_ENVIRONMENT


def validate_port_number(value: Any) -> Optional[int]:
    """Return ``value`` when it is 80, 443, or within 1024-65535."""
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if value in PRIVILEGED_PORTS:
        return value
    low, high = UNPRIVILEGED_PORT_RANGE
    return value if low <= value <= high else None


def validate_non_empty_string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value != "" else None


def validate_string_mapping(value: Any) -> Optional[dict[str, str]]:
    """Keep the string-to-string entries of an object or list of pairs.

    Entries with an empty or non-string key or value are dropped. Anything
    that is neither a JSON object nor a JSON array yields ``None``.
    """
    if isinstance(value, dict):
        pairs = list(value.items())
    elif isinstance(value, list):
        pairs = [
            tuple(item)
            for item in value
            if isinstance(item, (list, tuple)) and len(item) == 2
        ]
    else:
        return None
    return {
        key: item
        for key, item in pairs
        if validate_non_empty_string(key) is not None
        and validate_non_empty_string(item) is not None
    }


def _parse_cli_port(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip().isdigit():
        return None
    return validate_port_number(int(value))


def _parse_cli_mapping(value: Optional[str]) -> Optional[dict[str, str]]:
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        CONFIG_LOGGER.warning(
            "Ignoring command-line mapping that is not valid JSON",
            extra={"event": "cli_mapping_invalid"},
        )
        return None
    return validate_string_mapping(parsed)


FILE_VALIDATORS = {
    "certificate_name": validate_non_empty_string,
    "file_name_extension_media_types": validate_string_mapping,
    "headers": validate_string_mapping,
    "host_name": validate_non_empty_string,
    "port_number": validate_port_number,
    "root_folder": validate_non_empty_string,
}

CLI_VALIDATORS = {
    "certificate_name": validate_non_empty_string,
    "file_name_extension_media_types": _parse_cli_mapping,
    "headers": _parse_cli_mapping,
    "host_name": validate_non_empty_string,
    "port_number": _parse_cli_port,
    "root_folder": validate_non_empty_string,
}

DEFAULTS: dict[str, Any] = {
    "certificate_name": DEFAULT_CERTIFICATE_NAME,
    "file_name_extension_media_types": {},
    "headers": {},
    "host_name": DEFAULT_HOST_NAME,
    "port_number": DEFAULT_PORT_NUMBER,
    "root_folder": DEFAULT_ROOT_FOLDER,
}


def validate_fields(raw: Mapping[str, Any], validators) -> dict[str, Any]:
    """Return the known fields of ``raw`` whose values pass validation."""
    validated = {
        name: validators[name](value)
        for name, value in raw.items()
        if name in validators
    }
    return {name: value for name, value in validated.items() if value is not None}


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse the JSON configuration file, requiring an object at the root."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as error:
        raise ConfigFileError(f"Configuration file not found: {path}") from error
    except OSError as error:
        raise ConfigFileError(f"Configuration file unreadable: {path}") from error

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as error:
        raise ConfigFileError(f"Configuration file is not valid JSON: {path}") from error

    if not isinstance(parsed, dict):
        raise ConfigFileError(f"Configuration file root is not an object: {path}")
    return parsed


def load_file_settings(path: Optional[Path]) -> dict[str, Any]:
    """Return validated file-level settings, or nothing when unusable."""
    if path is None:
        return {}
    try:
        raw = read_config_file(path)
    except ConfigFileError as error:
        if isinstance(error.__cause__, FileNotFoundError):
            CONFIG_LOGGER.info(
                "No configuration file found",
                extra={"event": "config_file_missing", "config_file": str(path)},
            )
        else:
            CONFIG_LOGGER.error(
                "Ignoring configuration file",
                extra={
                    "event": "config_file_invalid",
                    "config_file": str(path),
                    "error_type": type(error.__cause__ or error).__name__,
                },
                exc_info=True,
            )
        return {}
    return validate_fields(raw, FILE_VALIDATORS)


def resolve_configuration(
    args: argparse.Namespace,
    file_settings: Optional[Mapping[str, Any]] = None,
    environment: Optional[str] = None,
) -> Configuration:
    """Merge CLI arguments, file settings and defaults, field by field.

    A relative ``root_folder`` is taken relative to the application
    directory (the folder holding ``main.py``), not the working directory.
    """
    cli_raw = {
        name: getattr(args, name, None)
        for name in CLI_VALIDATORS
        if getattr(args, name, None) is not None
    }
    cli_settings = validate_fields(cli_raw, CLI_VALIDATORS)
    merged = {**DEFAULTS, **(file_settings or {}), **cli_settings}

    root_folder = (APPLICATION_DIRECTORY / merged["root_folder"]).resolve()
    if not root_folder.is_dir():
        CONFIG_LOGGER.warning(
            "Root folder is not a directory",
            extra={"event": "root_folder_missing", "root_folder": str(root_folder)},
        )

    return Configuration(
        certificate_name=merged["certificate_name"],
        environment=resolve_environment(environment),
        extension_media_types=MappingProxyType(
            dict(merged["file_name_extension_media_types"])
        ),
        headers=MappingProxyType(dict(merged["headers"])),
        host_name=merged["host_name"],
        port_number=merged["port_number"],
        root_folder=str(root_folder),
    )


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments; unset positionals are ``None``."""
    parser = argparse.ArgumentParser(description="Serve static files over HTTP(S)")
    parser.add_argument("root_folder", nargs="?", default=None)
    parser.add_argument("host_name", nargs="?", default=None)
    parser.add_argument("port_number", nargs="?", default=None)
    parser.add_argument("certificate_name", nargs="?", default=None)
    parser.add_argument(
        "headers", nargs="?", default=None, help="JSON object of response headers"
    )
    parser.add_argument(
        "file_name_extension_media_types",
        nargs="?",
        default=None,
        help="JSON object mapping file name extensions to media types",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        default=Path(os.getenv("STATIC_SERVER_CONFIG_FILE", str(DEFAULT_CONFIG_FILE))),
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("STATIC_SERVER_LOG_LEVEL", "INFO").upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=os.getenv("STATIC_SERVER_LOG_DESTINATION", "stdout"),
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=os.getenv("STATIC_SERVER_LOG_FORMAT", "text"),
        choices=["text", "json"],
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Idle timeout in seconds for client connections",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Grace period in seconds for graceful shutdown",
    )
    return parser.parse_args(argv)
