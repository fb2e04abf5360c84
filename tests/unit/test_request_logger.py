"""Unit tests for the request logging middleware."""

import logging

import pytest

from static_server.domain.http_types import HttpRequest
from static_server.handlers.file_handler import FileServer
from static_server.pipeline.io import build_request
from static_server.pipeline.request_logger import (
    STATUS_UNSET,
    ResponseCapture,
    request_logger,
)
from tests.utils.http import RecordingWriter


def _request(method="GET", path="/index.html", user_agent="pytest-agent"):
    return HttpRequest(
        method=method,
        target=path,
        path=path,
        headers={"user-agent": user_agent},
        remote_addr="127.0.0.1:50000",
    )


def _request_records(caplog):
    return [r for r in caplog.records if r.getMessage() == "HTTP Request"]


def test_logs_one_record_with_request_fields(logger, caplog):
    """A handled request produces exactly one record describing it."""
    caplog.set_level(logging.INFO)

    def handler(writer, _request):
        writer.header()["Content-Length"] = "5"
        writer.write_header(200)
        writer.write(b"hello")

    request_logger(logger, handler)(RecordingWriter(), _request())

    records = _request_records(caplog)
    assert len(records) == 1
    record = records[0]
    assert record.levelno == logging.INFO
    assert record.method == "GET"
    assert record.path == "/index.html"
    assert record.status == 200
    assert record.remote_addr == "127.0.0.1:50000"
    assert record.user_agent == "pytest-agent"
    assert record.bytes == 5
    assert isinstance(record.duration, int)
    assert record.duration >= 0


def test_bytes_equals_sum_of_writes(logger, caplog):
    """The logged byte count is the total of every body write."""
    caplog.set_level(logging.INFO)
    pieces = [b"a" * 10, b"", b"b" * 4096, b"c"]

    def handler(writer, _request):
        for piece in pieces:
            writer.write(piece)

    writer = RecordingWriter()
    request_logger(logger, handler)(writer, _request())

    record = _request_records(caplog)[0]
    assert record.bytes == sum(len(piece) for piece in pieces)
    assert writer.body == b"".join(pieces)


def test_implicit_status_recorded_as_ok(logger, caplog):
    """Writing a body without an explicit status records the implicit 200."""
    caplog.set_level(logging.INFO)

    request_logger(logger, lambda writer, _req: writer.write(b"x"))(
        RecordingWriter(), _request()
    )

    assert _request_records(caplog)[0].status == 200


def test_status_stays_unset_when_handler_writes_nothing(logger, caplog):
    """A handler that never writes leaves the status at the unset sentinel."""
    caplog.set_level(logging.INFO)

    request_logger(logger, lambda _writer, _req: None)(RecordingWriter(), _request())

    record = _request_records(caplog)[0]
    assert record.status == STATUS_UNSET
    assert record.bytes == 0


def test_first_status_wins(logger, caplog):
    """Only the first write_header call determines the logged status."""
    caplog.set_level(logging.INFO)

    def handler(writer, _request):
        writer.write_header(404)
        writer.write_header(500)

    writer = RecordingWriter()
    request_logger(logger, handler)(writer, _request())

    assert _request_records(caplog)[0].status == 404
    assert writer.header_calls == [404, 500]


def test_exception_is_logged_once_and_propagates(logger, caplog):
    """A failing handler still yields one record and its error surfaces."""
    caplog.set_level(logging.INFO)

    def handler(_writer, _request):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        request_logger(logger, handler)(RecordingWriter(), _request())

    records = _request_records(caplog)
    assert len(records) == 1
    assert records[0].status == STATUS_UNSET


def test_each_request_gets_a_fresh_capture(logger, caplog):
    """Observations do not leak between consecutive requests."""
    caplog.set_level(logging.INFO)
    wrapped = request_logger(
        logger, lambda writer, request: writer.write(request.path.encode())
    )

    wrapped(RecordingWriter(), _request(path="/first-path"))
    wrapped(RecordingWriter(), _request(method="HEAD", path="/b"))

    first, second = _request_records(caplog)
    assert (first.method, first.path, first.bytes) == ("GET", "/first-path", 11)
    assert (second.method, second.path, second.bytes) == ("HEAD", "/b", 2)


def test_missing_user_agent_logged_as_empty_string(logger, caplog):
    caplog.set_level(logging.INFO)
    request = HttpRequest(method="GET", target="/", path="/")

    request_logger(logger, lambda _w, _r: None)(RecordingWriter(), request)

    assert _request_records(caplog)[0].user_agent == ""


def test_capture_forwards_headers_and_counts_reported_bytes():
    """The capture delegates to the wrapped writer and trusts its counts."""

    class DiscardingWriter(RecordingWriter):
        def write(self, data):
            super().write(data)
            return 0

    inner = DiscardingWriter()
    capture = ResponseCapture(inner)
    capture.header()["X-Test"] = "1"
    capture.write(b"dropped")

    assert inner.headers == {"X-Test": "1"}
    assert capture.status == 200
    assert capture.size == 0


def test_double_slash_target_logged_and_not_served_as_suffix(logger, caplog, tmp_path):
    """'//foo/bar' is logged verbatim and never answered with '<root>/bar'."""
    caplog.set_level(logging.INFO)
    (tmp_path / "bar").write_text("wrong file")
    request = build_request(b"GET //foo/bar HTTP/1.1\r\nHost: x", "127.0.0.1:50000")
    writer = RecordingWriter()

    request_logger(logger, FileServer(str(tmp_path)))(writer, request)

    assert b"wrong file" not in writer.body
    assert writer.status == 301
    assert writer.headers["Location"] == "/foo/bar"
    record = _request_records(caplog)[0]
    assert record.path == "//foo/bar"
    assert record.status == 301
