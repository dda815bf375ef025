"""Unit tests for per-request correlation ids."""

import threading

from static_server.domain.correlation_id import (
    clear_correlation_id,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)


class TestCorrelationIdContext:
    """Test correlation ID context management."""

    def test_generated_ids_are_short_hex_and_unique(self):
        first = generate_correlation_id()
        second = generate_correlation_id()

        assert len(first) == 12
        int(first, 16)
        assert first != second

    def test_set_get_and_clear(self):
        set_correlation_id("req-42")
        assert get_correlation_id() == "req-42"
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_ids_are_isolated_per_thread(self):
        """Each worker thread sees only its own id."""
        set_correlation_id("main-thread")
        seen = []

        def worker():
            seen.append(get_correlation_id())
            set_correlation_id("worker-thread")
            seen.append(get_correlation_id())

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert seen == [None, "worker-thread"]
        assert get_correlation_id() == "main-thread"
        clear_correlation_id()
