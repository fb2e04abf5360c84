"""HTTP Input/Output operations."""

import logging
import socket
import time
import urllib.parse
from email.utils import formatdate
from http import HTTPStatus
from typing import Optional, Tuple

from static_server.bootstrap.config import HEADER_DELIMITER
from static_server.domain.http_types import HttpRequest

SUPPORTED_VERSIONS = {"HTTP/1.0", "HTTP/1.1"}
RECV_SIZE = 4096
BODYLESS_STATUSES = {HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED}


class MalformedRequest(ValueError):
    """Raised when the request head cannot be parsed."""


class HeaderTooLarge(Exception):
    """Raised when the request head exceeds the configured size limit."""


def _deadline_after(seconds: float) -> int:
    return time.monotonic_ns() + int(seconds * 1_000_000_000)


def recv_with_deadline(client_socket: socket.socket, deadline_ns: int) -> bytes:
    """Receive data from socket with a deadline, raising TimeoutError if exceeded."""
    remaining_ns = deadline_ns - time.monotonic_ns()
    if remaining_ns <= 0:
        raise TimeoutError("Read deadline exceeded")
    client_socket.settimeout(remaining_ns / 1_000_000_000)
    return client_socket.recv(RECV_SIZE)


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        if not line:
            continue
        if ":" not in line:
            raise MalformedRequest("Invalid header line")
        name, value = line.split(":", 1)
        name = name.strip().lower()
        if not name:
            raise MalformedRequest("Empty header name")
        parsed[name] = value.strip()
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str, str]:
    """Parse the method, target and version from the request line."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise MalformedRequest("Invalid request line") from exc
    if not method or not target:
        raise MalformedRequest("Invalid request line")
    if version not in SUPPORTED_VERSIONS:
        raise MalformedRequest(f"Unsupported version {version!r}")
    return method, target, version


def split_target(target: str) -> Tuple[str, str]:
    """Return the path and query of a request target.

    Origin-form targets keep their whole path, including a leading '//';
    only absolute-form targets are parsed as URLs.
    """
    if target.startswith("/"):
        path, _, query = target.partition("?")
        return path, query
    parsed_target = urllib.parse.urlsplit(target)
    return parsed_target.path, parsed_target.query


def build_request(header_block: bytes, remote_addr: str) -> HttpRequest:
    """Build an HttpRequest from a raw header block."""
    try:
        header_lines = header_block.decode("iso-8859-1").split("\r\n")
    except UnicodeDecodeError as exc:
        raise MalformedRequest("Undecodable request head") from exc
    method, target, version = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    raw_path, query = split_target(target)
    return HttpRequest(
        method=method,
        target=target,
        path=urllib.parse.unquote(raw_path) or "/",
        query=query,
        version=version,
        headers=headers,
        remote_addr=remote_addr,
    )


def receive_request(
    client_socket: socket.socket,
    buffer: bytes,
    remote_addr: str,
    read_timeout: float,
    max_header_bytes: int,
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes from the socket until a complete request head is available.

    Returns (None, b"") when the peer closes the connection mid-request.
    """
    deadline_ns = _deadline_after(read_timeout)
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > max_header_bytes:
            raise HeaderTooLarge
        chunk = recv_with_deadline(client_socket, deadline_ns)
        if not chunk:
            return None, b""
        buffer += chunk

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    if len(header_block) > max_header_bytes:
        raise HeaderTooLarge
    # tolerate blank lines between keep-alive requests
    header_block = header_block.lstrip(b"\r\n")
    request = build_request(header_block, remote_addr)
    remainder = discard_body(client_socket, request, remainder, deadline_ns)
    return request, remainder


def discard_body(
    client_socket: socket.socket, request: HttpRequest, buffer: bytes, deadline_ns: int
) -> bytes:
    """Consume a Content-Length request body without keeping it."""
    header_value = request.headers.get("content-length")
    if header_value is None:
        return buffer
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise MalformedRequest("Invalid Content-Length") from exc
    if content_length < 0:
        raise MalformedRequest("Negative Content-Length")

    while len(buffer) < content_length:
        content_length -= len(buffer)
        buffer = recv_with_deadline(client_socket, deadline_ns)
        if not buffer:
            raise ConnectionError("Connection closed while reading request body")
    return buffer[content_length:]


def status_line(status: int) -> str:
    """Render an HTTP/1.1 status line for the given code."""
    try:
        reason = HTTPStatus(status).phrase
    except ValueError:
        reason = ""
    return f"HTTP/1.1 {status} {reason}".rstrip()


class SocketResponseWriter:
    """ResponseWriter that frames and sends a response over a client socket."""

    def __init__(
        self,
        client_socket: socket.socket,
        request: HttpRequest,
        write_timeout: float,
        close_connection: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        # pylint: disable=too-many-arguments, too-many-positional-arguments
        self._socket = client_socket
        self._request = request
        self._deadline_ns = _deadline_after(write_timeout)
        self._headers: dict[str, str] = {}
        self._status = 0
        self._chunked = False
        self._bodyless = False
        self._finished = False
        self._logger = logger or logging.getLogger("static_server.io")
        self.close_connection = close_connection

    @property
    def headers_sent(self) -> bool:
        return self._status != 0

    def header(self) -> dict[str, str]:
        return self._headers

    def write_header(self, status: int) -> None:
        if self._status:
            self._logger.warning(
                "Superfluous write_header call",
                extra={"status": int(status), "path": self._request.path},
            )
            return
        self._status = int(status)
        self._bodyless = (
            self._request.method == "HEAD"
            or self._status in BODYLESS_STATUSES
            or 100 <= self._status < 200
        )

        headers = dict(self._headers)
        headers.setdefault("Date", formatdate(usegmt=True))
        if "Content-Length" not in headers and not self._bodyless:
            if self._request.version == "HTTP/1.1":
                headers["Transfer-Encoding"] = "chunked"
                self._chunked = True
            else:
                self.close_connection = True
        if self.close_connection:
            headers["Connection"] = "close"

        header_lines = [status_line(self._status)]
        header_lines.extend(f"{name}: {value}" for name, value in headers.items())
        self._send("\r\n".join(header_lines).encode("latin-1") + HEADER_DELIMITER)

    def write(self, data: bytes) -> int:
        if not self._status:
            self.write_header(HTTPStatus.OK)
        if not data or self._bodyless:
            return 0
        if self._chunked:
            self._send(f"{len(data):X}\r\n".encode() + data + b"\r\n")
        else:
            self._send(data)
        return len(data)

    def finish(self) -> None:
        """Complete the response, sending an empty 200 if nothing was written."""
        if self._finished:
            return
        if not self._status:
            self._headers.setdefault("Content-Length", "0")
            self.write_header(HTTPStatus.OK)
        if self._chunked:
            self._send(b"0\r\n\r\n")
        self._finished = True
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                "Sent response",
                extra={"status": self._status, "path": self._request.path},
            )

    def _send(self, payload: bytes) -> None:
        remaining_ns = self._deadline_ns - time.monotonic_ns()
        if remaining_ns <= 0:
            raise TimeoutError("Write deadline exceeded")
        self._socket.settimeout(remaining_ns / 1_000_000_000)
        self._socket.sendall(payload)


def send_error_status(
    client_socket: socket.socket, status: int, write_timeout: float
) -> None:
    """Answer a request the transport rejected before routing, then close."""
    body = f"{int(status)} {HTTPStatus(status).phrase}\n".encode()
    request = HttpRequest(method="GET", target="*", path="*")
    writer = SocketResponseWriter(
        client_socket, request, write_timeout, close_connection=True
    )
    writer.header().update(
        {"Content-Type": "text/plain; charset=utf-8", "Content-Length": str(len(body))}
    )
    writer.write_header(status)
    writer.write(body)
    writer.finish()
