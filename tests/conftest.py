"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"

CUSTOM_HEADERS = {"X-Test": "1"}
CUSTOM_MEDIA_TYPES = {"md": "text/markdown; charset=utf-8", "CSV": "text/x-upper"}


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    root_folder: Path
    working_directory: Path
    process: subprocess.Popen[str]
    log_file: Path


def build_site(root: Path) -> Path:
    """Populate ``root`` with a small static site used across tests."""

    root.mkdir(parents=True, exist_ok=True)
    (root / "index.html").write_text("<h1>home</h1>", encoding="utf-8")
    (root / "style.css").write_text("body { color: red; }", encoding="utf-8")
    (root / "readme.md").write_text("# readme", encoding="utf-8")
    (root / "table.CSV").write_text("a,b", encoding="utf-8")
    (root / "LICENSE").write_text("license text", encoding="utf-8")
    (root / ".secret").write_text("hidden", encoding="utf-8")
    subdir = root / "subdir"
    subdir.mkdir(exist_ok=True)
    (subdir / "index.html").write_text("<h1>subdir</h1>", encoding="utf-8")
    (root / "empty").mkdir(exist_ok=True)
    return root


def launch_server(
    working_directory: Path,
    positional_args: list[str],
    host: str,
    port: int,
    extra_args: list[str] | None = None,
) -> Generator[ServerProcessInfo, None, None]:
    """Start ``main.py`` in ``working_directory`` and stop it afterwards."""

    log_file = working_directory / "server.log"
    args = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        *positional_args,
        "--config-file",
        str(working_directory / "static_server.json"),
        "--log-destination",
        str(log_file),
    ]
    if extra_args:
        args.extend(extra_args)

    env = {**os.environ, "STATIC_SERVER_ENV": "development"}
    with subprocess.Popen(
        args,
        cwd=working_directory,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(host, port)
        except Exception:
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            raise

        root_folder = Path(positional_args[0]) if positional_args else working_directory
        yield {
            "base_url": f"http://{host}:{port}",
            "host": host,
            "port": port,
            "root_folder": root_folder,
            "working_directory": working_directory,
            "process": process,
            "log_file": log_file,
        }

        process.terminate()
        try:
            process.communicate(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture()
def site_root(tmp_path: Path) -> Path:
    """Provide a populated site folder for unit tests."""

    return build_site(tmp_path / "public")


@pytest.fixture(name="server_process", scope="module")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server over a sample site with custom headers and media types."""

    host = "127.0.0.1"
    port = reserve_port(host)
    working_directory = tmp_path_factory.mktemp("server-cwd")
    root = build_site(working_directory / "public")
    positional = [
        str(root),
        host,
        str(port),
        "no-such-certificate",
        json.dumps(CUSTOM_HEADERS),
        json.dumps(CUSTOM_MEDIA_TYPES),
    ]
    yield from launch_server(working_directory, positional, host, port)


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
