"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from typing import Callable, MutableMapping, Protocol


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request head."""

    method: str
    target: str
    path: str
    query: str = ""
    version: str = "HTTP/1.1"
    headers: dict[str, str] = field(default_factory=dict)
    remote_addr: str = ""

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")


class ResponseWriter(Protocol):
    """Capability set handlers use to produce a response."""

    def header(self) -> MutableMapping[str, str]:
        """Return the mutable response header map."""

    def write_header(self, status: int) -> None:
        """Send the status line and headers."""

    def write(self, data: bytes) -> int:
        """Send body bytes, returning how many were written."""


Handler = Callable[[ResponseWriter, HttpRequest], None]


def should_close(request: HttpRequest) -> bool:
    """Determine whether the connection should be closed after responding."""
    connection = request.headers.get("connection", "").lower()
    if request.version == "HTTP/1.0":
        return connection != "keep-alive"
    return connection == "close"


def format_remote_addr(client_address: tuple) -> str:
    """Render a socket peer address as host:port, bracketing IPv6 hosts."""
    host, port = client_address[0], client_address[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"
