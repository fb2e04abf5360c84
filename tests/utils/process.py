"""Helpers for running the server entry point as a subprocess."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
from pathlib import Path

from tests.utils.http import parse_log_lines, wait_for_port

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"


def launch_server(
    host: str,
    port: int,
    directory: Path | None,
    use_defaults: bool = False,
) -> subprocess.Popen[str]:
    """Start main.py configured through PORT and STATIC_DIR.

    With ``use_defaults`` both variables are removed from the environment so
    the server falls back to its built-in defaults; ``port`` is then only the
    port to wait for.
    """

    env = dict(os.environ)
    env.pop("PORT", None)
    env.pop("STATIC_DIR", None)
    if not use_defaults:
        env["PORT"] = str(port)
        if directory is not None:
            env["STATIC_DIR"] = str(directory)
    process = subprocess.Popen(
        [sys.executable, str(SERVER_ENTRYPOINT), "--host", host],
        cwd=PROJECT_ROOT,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    try:
        wait_for_port(host, port)
    except Exception:
        # If startup failed, print stdout/stderr to help debug
        process.terminate()
        stdout, stderr = process.communicate(timeout=5)
        print(f"\nServer stdout:\n{stdout}")
        print(f"\nServer stderr:\n{stderr}")
        raise
    return process


def stop_server(
    process: subprocess.Popen[str], sig: int = signal.SIGTERM, timeout: float = 10.0
) -> list[dict]:
    """Signal the server, wait for it to exit and return its log records."""

    if process.poll() is None:
        process.send_signal(sig)
    stdout, _ = process.communicate(timeout=timeout)
    return parse_log_lines(stdout)
