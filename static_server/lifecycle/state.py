"""Server lifecycle state management."""

import enum
import logging
import socket
import threading
import time
from typing import Optional


class ServerState(enum.Enum):
    INITIAL = "initial"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class ServerLifecycle:
    """Tracks server state, worker threads and connection activity.

    A connection is idle while its worker waits for the next request and
    active while a request is read, handled and answered. Draining closes
    idle connections at once and lets active ones finish.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._state = ServerState.INITIAL
        self._workers: set[threading.Thread] = set()
        self._connections: dict[socket.socket, bool] = {}
        self._logger = logger or logging.getLogger("static_server.lifecycle")

    @property
    def state(self) -> ServerState:
        with self._lock:
            return self._state

    def set_state(self, state: ServerState) -> None:
        with self._lock:
            self._state = state

    def should_stop(self) -> bool:
        """Check if the server should stop accepting new connections."""
        return self._stop_event.is_set()

    def is_draining(self) -> bool:
        """Check if the server is in draining mode."""
        return self.state is ServerState.SHUTTING_DOWN

    def register_worker(self, thread: threading.Thread) -> None:
        """Register a worker thread for tracking."""
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        """Remove a worker thread from tracking."""
        with self._lock:
            self._workers.discard(thread)

    def active_worker_count(self) -> int:
        """Return the number of tracked worker threads still running."""
        with self._lock:
            return sum(1 for worker in self._workers if worker.is_alive())

    def track_connection(self, client_socket: socket.socket) -> None:
        """Start tracking a freshly accepted connection as idle."""
        with self._lock:
            self._connections[client_socket] = False

    def forget_connection(self, client_socket: socket.socket) -> None:
        with self._lock:
            self._connections.pop(client_socket, None)

    def mark_active(self, client_socket: socket.socket) -> bool:
        """Flag the connection as serving a request.

        Returns False when draining already closed the connection.
        """
        with self._lock:
            if client_socket not in self._connections:
                return False
            self._connections[client_socket] = True
            return True

    def mark_idle(self, client_socket: socket.socket) -> bool:
        """Flag the connection as waiting; False means it should close."""
        with self._lock:
            if self._state is not ServerState.RUNNING:
                return False
            if client_socket in self._connections:
                self._connections[client_socket] = False
            return True

    def begin_draining(self) -> None:
        """Stop accepting connections and close every idle one."""
        with self._lock:
            self._state = ServerState.SHUTTING_DOWN
            self._stop_event.set()
            idle = [conn for conn, active in self._connections.items() if not active]
            for conn in idle:
                del self._connections[conn]
            in_flight = len(self._connections)
        for conn in idle:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        self._logger.info("Beginning graceful shutdown", extra={"in_flight": in_flight})

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {w for w in self._workers if w.is_alive()}
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._logger.warning(
                    "Shutdown timeout exceeded",
                    extra={"in_flight": len(active_workers)},
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
