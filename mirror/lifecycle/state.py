"""Draining flag and bookkeeping for mirror threads still in flight."""

import logging
import threading
import time

from mirror.domain.connection_id import ConnectionLoggerAdapter

LIFECYCLE_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("http_mirror.lifecycle"), {}
)


class ServerLifecycle:
    """Tracks draining state and the mirror threads still in flight.

    Draining is one-way: once a shutdown signal arrives the accept loop
    stops taking work and the remaining mirrors are given a grace period.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._draining = threading.Event()
        self._workers: set[threading.Thread] = set()

    def should_stop(self) -> bool:
        """True once the accept loop should leave at its next poll."""
        return self._draining.is_set()

    def is_draining(self) -> bool:
        return self._draining.is_set()

    def register_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.discard(thread)

    def has_worker(self, thread: threading.Thread) -> bool:
        with self._lock:
            return thread in self._workers

    def active_worker_count(self) -> int:
        with self._lock:
            return len(self._workers)

    def begin_draining(self) -> None:
        """Stop accepting and let in-flight mirrors finish."""
        if self._draining.is_set():
            return
        self._draining.set()
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown", extra={"event": "draining_started"}
        )

    def _alive_workers(self) -> list[threading.Thread]:
        with self._lock:
            self._workers = {w for w in self._workers if w.is_alive()}
            return list(self._workers)

    def wait_for_workers(self, timeout: float) -> bool:
        """Join mirror threads until none remain or ``timeout`` seconds pass."""
        deadline = time.monotonic() + timeout
        while True:
            alive = self._alive_workers()
            remaining = deadline - time.monotonic()
            if not alive or remaining <= 0:
                break
            alive[0].join(timeout=min(0.1, remaining))

        if alive:
            LIFECYCLE_LOGGER.warning(
                "Shutdown timeout exceeded",
                extra={"event": "shutdown_timeout", "remaining_workers": len(alive)},
            )
            return False
        return True
