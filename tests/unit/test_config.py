"""Unit tests for configuration parsing, validation and precedence."""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from static_server.bootstrap.config import (
    DEFAULT_CERTIFICATE_NAME,
    DEFAULT_HOST_NAME,
    DEFAULT_PORT_NUMBER,
    ConfigFileError,
    load_file_settings,
    parse_cli_args,
    read_config_file,
    resolve_configuration,
    resolve_environment,
    validate_port_number,
    validate_string_mapping,
)

if TYPE_CHECKING:
    from _pytest.monkeypatch import MonkeyPatch


@pytest.mark.parametrize("port", [80, 443, 1024, 8020, 49152, 65535])
def test_validate_port_number_accepts_allowed_ports(port: int) -> None:
    assert validate_port_number(port) == port


@pytest.mark.parametrize(
    "port", [0, 1, 79, 81, 442, 444, 1023, 65536, -80, True, 8020.0, "8020", None]
)
def test_validate_port_number_rejects_everything_else(port) -> None:
    assert validate_port_number(port) is None


def test_validate_port_number_full_range_boundaries() -> None:
    """Every value in the unprivileged range is accepted, nothing below it."""
    accepted = [port for port in range(0, 70000) if validate_port_number(port)]
    assert accepted == [80, 443, *range(1024, 65536)]


def test_validate_string_mapping_filters_invalid_entries() -> None:
    mapping = validate_string_mapping(
        {"X-Test": "1", "": "empty-key", "X-Empty": "", "X-Number": 5}
    )
    assert mapping == {"X-Test": "1"}


def test_validate_string_mapping_accepts_pair_lists() -> None:
    mapping = validate_string_mapping([["mjs", "text/javascript"], ["bad"], ["x", 1]])
    assert mapping == {"mjs": "text/javascript"}


@pytest.mark.parametrize("value", ["text", 3, None, True])
def test_validate_string_mapping_rejects_non_containers(value) -> None:
    assert validate_string_mapping(value) is None


def test_parse_cli_args_defaults_are_unset() -> None:
    """Positionals stay None so precedence can fall through."""
    args = parse_cli_args([])

    assert args.root_folder is None
    assert args.host_name is None
    assert args.port_number is None
    assert args.certificate_name is None
    assert args.headers is None
    assert args.file_name_extension_media_types is None
    assert args.log_level == "INFO"
    assert args.log_destination == "stdout"
    assert args.log_format == "text"


def test_parse_cli_args_positional_order(tmp_path: Path) -> None:
    args = parse_cli_args(
        [
            tmp_path.as_posix(),
            "0.0.0.0",
            "9090",
            "site",
            '{"X-Test": "1"}',
            '{"md": "text/markdown"}',
            "--log-level",
            "debug",
        ]
    )

    assert args.root_folder == tmp_path.as_posix()
    assert args.host_name == "0.0.0.0"
    assert args.port_number == "9090"
    assert args.certificate_name == "site"
    assert args.headers == '{"X-Test": "1"}'
    assert args.file_name_extension_media_types == '{"md": "text/markdown"}'
    assert args.log_level == "DEBUG"


def test_parse_cli_args_honors_environment(monkeypatch: "MonkeyPatch") -> None:
    monkeypatch.setenv("STATIC_SERVER_LOG_LEVEL", "warning")
    monkeypatch.setenv("STATIC_SERVER_LOG_DESTINATION", "app.log")

    args = parse_cli_args([])

    assert args.log_level == "WARNING"
    assert args.log_destination == "app.log"


def test_resolve_configuration_defaults(
    tmp_path: Path, monkeypatch: "MonkeyPatch"
) -> None:
    monkeypatch.setattr("static_server.bootstrap.config.APPLICATION_DIRECTORY", tmp_path)
    configuration = resolve_configuration(parse_cli_args([]), {}, "production")

    assert configuration.root_folder == str(tmp_path.resolve())
    assert configuration.host_name == DEFAULT_HOST_NAME
    assert configuration.port_number == DEFAULT_PORT_NUMBER
    assert configuration.certificate_name == DEFAULT_CERTIFICATE_NAME
    assert dict(configuration.headers) == {}
    assert dict(configuration.extension_media_types) == {}
    assert configuration.environment == "production"


def test_relative_root_folder_follows_application_directory(
    tmp_path: Path, monkeypatch: "MonkeyPatch"
) -> None:
    """The working directory does not affect where content is served from."""
    application_directory = tmp_path / "app"
    (application_directory / "public").mkdir(parents=True)
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.setattr(
        "static_server.bootstrap.config.APPLICATION_DIRECTORY", application_directory
    )
    monkeypatch.chdir(elsewhere)

    from_cli = resolve_configuration(parse_cli_args(["public"]), {}, "development")
    from_file = resolve_configuration(
        parse_cli_args([]), {"root_folder": "public"}, "development"
    )

    expected = str((application_directory / "public").resolve())
    assert from_cli.root_folder == expected
    assert from_file.root_folder == expected


def test_absolute_root_folder_is_kept(
    tmp_path: Path, monkeypatch: "MonkeyPatch"
) -> None:
    monkeypatch.setattr(
        "static_server.bootstrap.config.APPLICATION_DIRECTORY", tmp_path / "app"
    )

    configuration = resolve_configuration(
        parse_cli_args([tmp_path.as_posix()]), {}, "development"
    )

    assert configuration.root_folder == str(tmp_path.resolve())


def test_resolve_configuration_precedence_is_per_field(tmp_path: Path) -> None:
    """CLI beats file, file beats default, independently for each field."""
    file_settings = {"host_name": "file-host", "port_number": 9000, "headers": {"A": "f"}}
    args = parse_cli_args([tmp_path.as_posix(), "cli-host"])

    configuration = resolve_configuration(args, file_settings, "development")

    assert configuration.host_name == "cli-host"
    assert configuration.port_number == 9000
    assert dict(configuration.headers) == {"A": "f"}
    assert configuration.certificate_name == DEFAULT_CERTIFICATE_NAME


def test_resolve_configuration_invalid_cli_values_fall_through(tmp_path: Path) -> None:
    file_settings = {"port_number": 9000, "headers": {"A": "f"}}
    args = parse_cli_args([tmp_path.as_posix(), "", "1000", "", "not json", "[1, 2]"])

    configuration = resolve_configuration(args, file_settings, "development")

    assert configuration.host_name == DEFAULT_HOST_NAME
    assert configuration.port_number == 9000
    assert configuration.certificate_name == DEFAULT_CERTIFICATE_NAME
    assert dict(configuration.headers) == {"A": "f"}
    assert dict(configuration.extension_media_types) == {}


def test_resolve_configuration_parses_cli_json(tmp_path: Path) -> None:
    args = parse_cli_args(
        [tmp_path.as_posix(), "localhost", "443", "site", '{"X-Test": "1"}', '{"md": "text/markdown"}']
    )

    configuration = resolve_configuration(args, {}, "development")

    assert configuration.port_number == 443
    assert configuration.certificate_name == "site"
    assert dict(configuration.headers) == {"X-Test": "1"}
    assert dict(configuration.extension_media_types) == {"md": "text/markdown"}


def test_configuration_is_read_only(tmp_path: Path) -> None:
    configuration = resolve_configuration(parse_cli_args([tmp_path.as_posix()]))

    with pytest.raises(AttributeError):
        configuration.port_number = 1234  # type: ignore[misc]
    with pytest.raises(TypeError):
        configuration.headers["X-New"] = "1"  # type: ignore[index]


def test_load_file_settings_validates_each_field(tmp_path: Path) -> None:
    config_file = tmp_path / "static_server.json"
    config_file.write_text(
        json.dumps(
            {
                "host_name": "example.test",
                "port_number": 22,
                "root_folder": "",
                "certificate_name": "site",
                "headers": {"X-Test": "1", "X-Bad": 2},
                "file_name_extension_media_types": {"md": "text/markdown"},
                "unknown": "ignored",
            }
        ),
        encoding="utf-8",
    )

    settings = load_file_settings(config_file)

    assert settings == {
        "host_name": "example.test",
        "certificate_name": "site",
        "headers": {"X-Test": "1"},
        "file_name_extension_media_types": {"md": "text/markdown"},
    }


def test_load_file_settings_missing_file_is_not_fatal(tmp_path: Path, caplog) -> None:
    caplog.set_level(logging.INFO)

    assert load_file_settings(tmp_path / "absent.json") == {}
    assert any(
        getattr(record, "event", None) == "config_file_missing"
        for record in caplog.records
    )


@pytest.mark.parametrize("contents", ["{not json", "[1, 2, 3]", '"text"'])
def test_load_file_settings_bad_file_is_logged(
    tmp_path: Path, caplog, contents: str
) -> None:
    caplog.set_level(logging.ERROR)
    config_file = tmp_path / "static_server.json"
    config_file.write_text(contents, encoding="utf-8")

    assert load_file_settings(config_file) == {}
    assert any(
        getattr(record, "event", None) == "config_file_invalid"
        for record in caplog.records
    )


def test_read_config_file_raises_config_file_error(tmp_path: Path) -> None:
    config_file = tmp_path / "static_server.json"
    config_file.write_text("[]", encoding="utf-8")

    with pytest.raises(ConfigFileError):
        read_config_file(config_file)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("development", "development"),
        ("production", "production"),
        ("staging", "development"),
        ("", "development"),
    ],
)
def test_resolve_environment(value: str, expected: str) -> None:
    assert resolve_environment(value) == expected


def test_resolve_environment_reads_variable(monkeypatch: "MonkeyPatch") -> None:
    monkeypatch.setenv("STATIC_SERVER_ENV", "production")
    assert resolve_environment() == "production"
    monkeypatch.delenv("STATIC_SERVER_ENV")
    assert resolve_environment() == "development"
