"""Server configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_PORT = "8080"
DEFAULT_STATIC_DIR = "./static"
READ_TIMEOUT_SECONDS = 10.0
WRITE_TIMEOUT_SECONDS = 10.0
MAX_HEADER_BYTES = 1 << 20
SHUTDOWN_TIMEOUT_SECONDS = 5.0

HEADER_DELIMITER = b"\r\n\r\n"
ALLOWED_METHODS = {"GET", "HEAD"}


def _env_str(name: str, default: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the environment value, treating empty strings as unset."""
    source = os.environ if environ is None else environ
    value = source.get(name)
    return value if value else default


@dataclass(frozen=True)
class ServerConfig:
    """Immutable server settings resolved once at startup."""

    port: str
    static_dir: str
    host: str = ""
    read_timeout: float = READ_TIMEOUT_SECONDS
    write_timeout: float = WRITE_TIMEOUT_SECONDS
    max_header_bytes: int = MAX_HEADER_BYTES

    @property
    def address(self) -> str:
        """Listening address in host:port form."""
        return f"{self.host}:{self.port}"


def load_config(environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """Build the configuration from PORT and STATIC_DIR with defaults."""
    return ServerConfig(
        port=_env_str("PORT", DEFAULT_PORT, environ),
        static_dir=_env_str("STATIC_DIR", DEFAULT_STATIC_DIR, environ),
    )


def parse_cli_args(
    argv: list[str], environ: Optional[Mapping[str, str]] = None
) -> argparse.Namespace:
    """Return parsed CLI arguments, seeding defaults from the environment."""
    defaults = load_config(environ)
    parser = argparse.ArgumentParser(description="Static file HTTP server")
    parser.add_argument("--port", default=defaults.port)
    parser.add_argument("--directory", default=defaults.static_dir)
    parser.add_argument(
        "--host", default=defaults.host, help="Interface to bind (default: all)"
    )
    parser.add_argument(
        "--log-level",
        default=_env_str("STATIC_SERVER_LOG_LEVEL", "INFO", environ).upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=_env_str("STATIC_SERVER_LOG_DESTINATION", "stdout", environ),
        help="stdout or a file path",
    )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Create the immutable configuration from parsed CLI arguments."""
    return ServerConfig(port=args.port, static_dir=args.directory, host=args.host)
