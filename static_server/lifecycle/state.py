"""Server lifecycle state: draining flag and connection worker tracking."""

import logging
import threading
import time

from static_server.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.lifecycle"), {}
)


class ServerLifecycle:
    """Tracks connection workers so shutdown can wait for them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._draining = threading.Event()
        self._workers: set[threading.Thread] = set()

    def is_draining(self) -> bool:
        return self._draining.is_set()

    def begin_draining(self) -> None:
        """Stop accepting connections; in-flight workers may finish."""
        self._draining.set()
        LIFECYCLE_LOGGER.info("Beginning graceful shutdown", extra={"event": "draining"})

    def register_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.discard(thread)

    def active_worker_count(self) -> int:
        with self._lock:
            return len(self._workers)

    def wait_for_workers(self, timeout: float) -> bool:
        """Join live workers until none remain or ``timeout`` elapses."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {w for w in self._workers if w.is_alive()}
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={"event": "shutdown_timeout"},
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
