"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port
from tests.utils.process import PROJECT_ROOT, launch_server

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    directory: Path
    process: subprocess.Popen[str]


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="static_root")
def _static_root(tmp_path_factory: "TempPathFactory") -> Path:
    """A served directory holding a small site."""

    directory = tmp_path_factory.mktemp("static")
    (directory / "index.html").write_text("<h1>hello</h1>\n")
    (directory / "app.js").write_text("console.log('ok');\n")
    (directory / "docs").mkdir()
    (directory / "docs" / "index.html").write_text("<p>docs</p>\n")
    (directory / "empty").mkdir()
    return directory


@pytest.fixture(name="server_process")
def _server_process(static_root: Path) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server in a background process for integration tests."""

    host = "127.0.0.1"
    port = reserve_port(host)
    process = launch_server(host, port, static_root)
    yield {
        "base_url": f"http://{host}:{port}",
        "host": host,
        "port": port,
        "directory": static_root,
        "process": process,
    }
    if process.poll() is None:
        process.kill()
        process.communicate(timeout=5)


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
