"""Main connection acceptance loop."""

import errno
import logging
import socket
import threading
import time

from static_server.domain.http_types import format_remote_addr
from static_server.transport.context import WorkerContext
from static_server.transport.worker import handle_client

# Per-connection accept backoff inside the transport; a failed bind or a
# stopped accept loop is never retried.
TRANSIENT_ACCEPT_ERRNOS = {
    errno.ECONNABORTED,
    errno.EMFILE,
    errno.ENFILE,
    errno.ENOBUFS,
    errno.ENOMEM,
    errno.EINTR,
}
INITIAL_BACKOFF_SECONDS = 0.005
MAX_BACKOFF_SECONDS = 1.0


def _handle_accepted_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
    logger: logging.Logger,
) -> None:
    """Hand a newly accepted connection to its own worker thread."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Client connection accepted",
            extra={"remote_addr": format_remote_addr(client_address)},
        )
    context.lifecycle.track_connection(client_socket)
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        name=f"worker-{format_remote_addr(client_address)}",
        daemon=True,
    )
    context.lifecycle.register_worker(thread)
    thread.start()


def run_accept_loop(server_socket: socket.socket, context: WorkerContext) -> None:
    """Accept connections until shutdown is requested.

    Transient accept errors are retried with a capped exponential backoff;
    any other OSError propagates to the caller. The listening socket is closed
    on exit.
    """
    logger = context.logger.getChild("transport.accept")
    lifecycle = context.lifecycle
    backoff = 0.0

    try:
        while not lifecycle.should_stop():
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                if error.errno not in TRANSIENT_ACCEPT_ERRNOS:
                    raise
                backoff = (
                    INITIAL_BACKOFF_SECONDS
                    if not backoff
                    else min(backoff * 2, MAX_BACKOFF_SECONDS)
                )
                logger.warning(
                    "Socket accept failed; retrying",
                    extra={"error": str(error), "error_type": type(error).__name__},
                )
                time.sleep(backoff)
                continue
            backoff = 0.0

            if lifecycle.should_stop():
                client_socket.close()
                break

            _handle_accepted_client(client_socket, client_address, context, logger)
    finally:
        server_socket.close()
