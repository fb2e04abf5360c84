"""Server lifecycle controller: startup, background serving and shutdown."""

import logging
import signal
import socket
import threading
import time
from typing import Optional

from static_server.bootstrap.config import ServerConfig
from static_server.bootstrap.socket_factory import create_server_socket
from static_server.domain.http_types import Handler
from static_server.lifecycle.state import ServerLifecycle, ServerState
from static_server.transport.accept_loop import run_accept_loop
from static_server.transport.context import WorkerContext

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)
SIGNAL_POLL_INTERVAL = 0.2


class ServerStartError(Exception):
    """Raised when the listening socket cannot be created."""


class StaticServer:
    """Owns the listening socket and drives the server through its states.

    ``start`` binds and launches the background accept thread, ``shutdown``
    stops accepting, closes idle connections and waits a bounded time for
    in-flight requests.
    """

    def __init__(
        self, config: ServerConfig, handler: Handler, logger: logging.Logger
    ) -> None:
        self.config = config
        self.lifecycle = ServerLifecycle(logger.getChild("lifecycle"))
        self._context = WorkerContext(
            handler=handler, config=config, lifecycle=self.lifecycle, logger=logger
        )
        self._logger = logger.getChild("controller")
        self._socket: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None
        self._failure: Optional[BaseException] = None
        self._failed = threading.Event()

    @property
    def state(self) -> ServerState:
        return self.lifecycle.state

    @property
    def failure(self) -> Optional[BaseException]:
        """The error that stopped the accept loop, if it failed on its own."""
        return self._failure

    @property
    def server_address(self) -> tuple:
        if self._socket is None:
            raise RuntimeError("Server is not listening")
        return self._socket.getsockname()

    def start(self) -> None:
        """Bind the listening socket and begin serving in the background."""
        if self.state is not ServerState.INITIAL:
            raise RuntimeError(f"Cannot start server in state {self.state.value}")
        try:
            self._socket = create_server_socket(self.config.host, self.config.port)
        except (OSError, ValueError) as error:
            raise ServerStartError(str(error)) from error

        self._accept_thread = threading.Thread(
            target=self._serve, name="accept-loop", daemon=True
        )
        self.lifecycle.set_state(ServerState.RUNNING)
        self._accept_thread.start()

    def _serve(self) -> None:
        try:
            run_accept_loop(self._socket, self._context)
        except Exception as error:  # pylint: disable=broad-except
            self._logger.error(
                "Accept loop failed",
                extra={
                    "addr": self.config.address,
                    "error": str(error),
                    "error_type": type(error).__name__,
                },
            )
            self._failure = error
            self._failed.set()

    def wait_failed(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop fails or the timeout elapses."""
        return self._failed.wait(timeout)

    def shutdown(self, timeout: float) -> bool:
        """Drain the server within ``timeout`` seconds.

        Returns True when every in-flight request finished in time and False
        when the deadline elapsed first. The server is STOPPED either way.
        """
        deadline = time.monotonic() + timeout
        self.lifecycle.begin_draining()
        if self._socket is not None:
            try:
                self._socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        if self._accept_thread is not None:
            self._accept_thread.join(timeout=max(0.0, deadline - time.monotonic()))

        drained = self.lifecycle.wait_for_workers(max(0.0, deadline - time.monotonic()))
        self.lifecycle.set_state(ServerState.STOPPED)
        return drained


def wait_for_signal(
    server: StaticServer, signals: tuple = SHUTDOWN_SIGNALS
) -> Optional[signal.Signals]:
    """Block until a shutdown signal arrives or the server fails.

    Returns the received signal, or None when the accept loop failed first.
    Signals arriving after the first one are ignored. Must be called from the
    main thread.
    """
    received: list[signal.Signals] = []
    wake = threading.Event()

    def _record(signum: int, _frame) -> None:
        if not received:
            received.append(signal.Signals(signum))
        wake.set()

    for sig in signals:
        signal.signal(sig, _record)

    while not received:
        if server.wait_failed(0):
            return None
        wake.wait(SIGNAL_POLL_INTERVAL)
    return received[0]
