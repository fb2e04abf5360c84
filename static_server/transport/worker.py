"""Worker thread logic for handling individual client connections."""

import logging
import socket
import threading
import time
from http import HTTPStatus
from typing import Optional

from static_server.domain.http_types import HttpRequest, format_remote_addr, should_close
from static_server.pipeline.io import (
    HeaderTooLarge,
    MalformedRequest,
    SocketResponseWriter,
    receive_request,
    recv_with_deadline,
    send_error_status,
)
from static_server.transport.context import WorkerContext


def _wait_for_request_start(
    client_socket: socket.socket, buffer: bytes, context: WorkerContext
) -> Optional[bytes]:
    """Block while idle until request bytes arrive; None means close."""
    if not buffer:
        idle_deadline_ns = time.monotonic_ns() + int(
            context.config.read_timeout * 1_000_000_000
        )
        buffer = recv_with_deadline(client_socket, idle_deadline_ns)
        if not buffer:
            return None
    if not context.lifecycle.mark_active(client_socket):
        return None
    return buffer


def _read_request_with_validation(
    client_socket: socket.socket,
    buffer: bytes,
    remote_addr: str,
    context: WorkerContext,
    logger: logging.Logger,
) -> tuple[Optional[HttpRequest], bytes]:
    """Read a request head, answering oversized or malformed ones directly."""
    # pylint: disable=too-many-arguments, too-many-positional-arguments
    config = context.config
    try:
        request, buffer = receive_request(
            client_socket,
            buffer,
            remote_addr,
            config.read_timeout,
            config.max_header_bytes,
        )
    except HeaderTooLarge:
        logger.warning(
            "Request header exceeded limit",
            extra={"remote_addr": remote_addr, "bytes": config.max_header_bytes},
        )
        send_error_status(
            client_socket,
            HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE,
            config.write_timeout,
        )
        return None, b""
    except MalformedRequest as error:
        logger.warning(
            "Malformed request received",
            extra={"remote_addr": remote_addr, "error": str(error)},
        )
        send_error_status(client_socket, HTTPStatus.BAD_REQUEST, config.write_timeout)
        return None, b""

    if request is None and logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Client disconnected during request", extra={"remote_addr": remote_addr}
        )
    return request, buffer


def _process_request(
    request: HttpRequest,
    client_socket: socket.socket,
    context: WorkerContext,
    logger: logging.Logger,
) -> bool:
    """Run the handler chain for one request; return True to keep the connection."""
    close_connection = should_close(request) or "transfer-encoding" in request.headers
    writer = SocketResponseWriter(
        client_socket,
        request,
        context.config.write_timeout,
        close_connection,
        logger=context.logger.getChild("io"),
    )
    try:
        context.handler(writer, request)
    except OSError:
        raise
    except Exception:  # pylint: disable=broad-except
        logger.error(
            "Handler failed",
            extra={
                "method": request.method,
                "path": request.path,
                "remote_addr": request.remote_addr,
            },
            exc_info=True,
        )
        if not writer.headers_sent:
            send_error_status(
                client_socket,
                HTTPStatus.INTERNAL_SERVER_ERROR,
                context.config.write_timeout,
            )
        return False
    writer.finish()
    return not writer.close_connection


def _cleanup_worker(
    context: WorkerContext,
    client_socket: socket.socket,
    thread: threading.Thread,
    logger: logging.Logger,
    remote_addr: str,
) -> None:
    # pylint: disable=too-many-arguments, too-many-positional-arguments
    context.lifecycle.forget_connection(client_socket)
    context.lifecycle.cleanup_worker(thread)

    try:
        client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    client_socket.close()

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Socket closed", extra={"remote_addr": remote_addr})


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Process requests on a client socket until the connection is closed."""
    logger = context.logger.getChild("transport.worker")
    current_thread = threading.current_thread()
    remote_addr = format_remote_addr(client_address)
    buffer: Optional[bytes] = b""

    try:
        while True:
            buffer = _wait_for_request_start(client_socket, buffer, context)
            if buffer is None:
                break

            request, buffer = _read_request_with_validation(
                client_socket, buffer, remote_addr, context, logger
            )
            if request is None:
                break

            if not _process_request(request, client_socket, context, logger):
                break
            if not context.lifecycle.mark_idle(client_socket):
                break
    except TimeoutError:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Connection timed out", extra={"remote_addr": remote_addr})
    except OSError as error:
        logger.warning(
            "Error handling client connection",
            extra={"remote_addr": remote_addr, "error_type": type(error).__name__},
        )
    except Exception as error:  # pylint: disable=broad-except
        logger.error(
            "Unexpected error in worker",
            extra={
                "remote_addr": remote_addr,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        _cleanup_worker(context, client_socket, current_thread, logger, remote_addr)
