"""File serving handler."""

import logging
import mimetypes
import os
from email.utils import formatdate, parsedate_to_datetime
from http import HTTPStatus
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from static_server.bootstrap.config import ALLOWED_METHODS
from static_server.domain.http_types import HttpRequest, ResponseWriter
from static_server.domain.sandbox import (
    ForbiddenPath,
    canonical_url_path,
    contains_dot_dot,
    resolve_sandbox_path,
)

INDEX_DOCUMENT = "index.html"
CHUNK_SIZE = 65536


def stream_file(file_handle: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield file contents in fixed-size chunks for streaming responses."""
    while True:
        chunk = file_handle.read(chunk_size)
        if not chunk:
            break
        yield chunk


def _content_type_for_path(filepath: Path) -> str:
    mime_type, _ = mimetypes.guess_type(filepath.as_posix())
    return mime_type or "application/octet-stream"


def _not_modified_since(request: HttpRequest, mtime: float) -> bool:
    header_value = request.headers.get("if-modified-since")
    if not header_value:
        return False
    try:
        since = parsedate_to_datetime(header_value)
    except (TypeError, ValueError):
        return False
    # HTTP dates have one second resolution
    return int(mtime) <= since.timestamp()


def error_response(writer: ResponseWriter, status: HTTPStatus) -> None:
    """Write a short plain-text error body for the given status."""
    body = f"{status.value} {status.phrase}\n".encode()
    headers = writer.header()
    headers["Content-Type"] = "text/plain; charset=utf-8"
    headers["Content-Length"] = str(len(body))
    headers["X-Content-Type-Options"] = "nosniff"
    writer.write_header(status)
    writer.write(body)


def redirect_response(writer: ResponseWriter, request: HttpRequest, location: str) -> None:
    """Send a 301 to the given path, keeping the query string."""
    if request.query:
        location = f"{location}?{request.query}"
    headers = writer.header()
    headers["Location"] = location
    headers["Content-Length"] = "0"
    writer.write_header(HTTPStatus.MOVED_PERMANENTLY)


class FileServer:
    """Handler serving files from a directory root.

    Non-canonical paths such as '//a/./b' redirect to their cleaned form.
    Directories redirect to their slash-terminated form and serve their
    index.html when present; directories without an index are forbidden.
    """

    def __init__(self, directory: str, logger: Optional[logging.Logger] = None) -> None:
        self.directory = directory
        self._logger = logger or logging.getLogger("static_server.handlers.file")

    def __call__(self, writer: ResponseWriter, request: HttpRequest) -> None:
        if request.method not in ALLOWED_METHODS:
            writer.header()["Allow"] = ", ".join(sorted(ALLOWED_METHODS))
            error_response(writer, HTTPStatus.METHOD_NOT_ALLOWED)
            return
        if contains_dot_dot(request.path):
            error_response(writer, HTTPStatus.BAD_REQUEST)
            return
        canonical_path = canonical_url_path(request.path)
        if canonical_path != request.path:
            redirect_response(writer, request, canonical_path)
            return

        try:
            resolved_path = resolve_sandbox_path(self.directory, request.path)
        except ForbiddenPath:
            self._logger.warning(
                "Forbidden path access blocked",
                extra={"path": request.path, "method": request.method},
            )
            error_response(writer, HTTPStatus.FORBIDDEN)
            return

        if resolved_path.is_dir():
            self._serve_directory(writer, request, resolved_path)
        elif resolved_path.is_file():
            if request.path.endswith("/"):
                redirect_response(writer, request, request.path.rstrip("/") or "/")
                return
            self._serve_file(writer, request, resolved_path)
        else:
            error_response(writer, HTTPStatus.NOT_FOUND)

    def _serve_directory(
        self, writer: ResponseWriter, request: HttpRequest, directory: Path
    ) -> None:
        if not request.path.endswith("/"):
            redirect_response(writer, request, request.path + "/")
            return
        index_path = directory / INDEX_DOCUMENT
        if index_path.is_file():
            self._serve_file(writer, request, index_path)
            return
        error_response(writer, HTTPStatus.FORBIDDEN)

    def _serve_file(
        self, writer: ResponseWriter, request: HttpRequest, filepath: Path
    ) -> None:
        try:
            file_handle = open(filepath, "rb")  # pylint: disable=consider-using-with
        except PermissionError:
            error_response(writer, HTTPStatus.FORBIDDEN)
            return
        except FileNotFoundError:
            error_response(writer, HTTPStatus.NOT_FOUND)
            return
        except OSError as error:
            self._logger.error(
                "File open failed",
                extra={"path": request.path, "error": str(error)},
            )
            error_response(writer, HTTPStatus.INTERNAL_SERVER_ERROR)
            return

        with file_handle:
            file_stat = os.fstat(file_handle.fileno())
            headers = writer.header()
            headers["Last-Modified"] = formatdate(file_stat.st_mtime, usegmt=True)
            if _not_modified_since(request, file_stat.st_mtime):
                writer.write_header(HTTPStatus.NOT_MODIFIED)
                return

            headers["Content-Type"] = _content_type_for_path(filepath)
            headers["Content-Length"] = str(file_stat.st_size)
            writer.write_header(HTTPStatus.OK)
            if request.method == "HEAD":
                return
            for chunk in stream_file(file_handle):
                writer.write(chunk)
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                "File read operation complete",
                extra={"path": os.fspath(filepath), "bytes": file_stat.st_size},
            )
