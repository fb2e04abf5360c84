"""Request logging middleware."""

import logging
import time
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, MutableMapping

from static_server.domain.http_types import Handler, HttpRequest, ResponseWriter

STATUS_UNSET = 0


@dataclass
class RequestObservation:
    """Per-request metadata emitted as a single log record."""

    method: str
    path: str
    status: int
    remote_addr: str
    user_agent: str
    duration: int
    size: int

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "path": self.path,
            "status": self.status,
            "remote_addr": self.remote_addr,
            "user_agent": self.user_agent,
            "duration": self.duration,
            "bytes": self.size,
        }


class ResponseCapture:
    """ResponseWriter decorator that records the status and body size.

    Every call is forwarded to the wrapped writer. The first status passed to
    write_header is kept; a body write before any status records 200, the
    status the transport sends implicitly. ``size`` counts the bytes the
    wrapped writer reports as written.
    """

    def __init__(self, writer: ResponseWriter) -> None:
        self._writer = writer
        self.status = STATUS_UNSET
        self.size = 0

    def header(self) -> MutableMapping[str, str]:
        return self._writer.header()

    def write_header(self, status: int) -> None:
        if self.status == STATUS_UNSET:
            self.status = int(status)
        self._writer.write_header(status)

    def write(self, data: bytes) -> int:
        if self.status == STATUS_UNSET:
            self.status = HTTPStatus.OK.value
        written = self._writer.write(data)
        self.size += written
        return written


def request_logger(logger: logging.Logger, next_handler: Handler) -> Handler:
    """Wrap a handler so each invocation emits one "HTTP Request" record.

    The record is emitted after the inner handler returns or raises; an
    exception from the inner handler propagates unchanged.
    """

    def handle(writer: ResponseWriter, request: HttpRequest) -> None:
        start_ns = time.monotonic_ns()
        capture = ResponseCapture(writer)
        try:
            next_handler(capture, request)
        finally:
            observation = RequestObservation(
                method=request.method,
                path=request.path,
                status=capture.status,
                remote_addr=request.remote_addr,
                user_agent=request.user_agent,
                duration=time.monotonic_ns() - start_ns,
                size=capture.size,
            )
            logger.info("HTTP Request", extra=observation.as_log_fields())

    return handle
