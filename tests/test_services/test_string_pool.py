"""Tests for the shared string pool."""

import logging
import threading

import pytest

from sheetlens.services.string_pool import (
    StringPool,
    StringPoolConfig,
    get_string_pool,
    reset_string_pool,
)


class TestStringPool:
    """Tests for StringPool."""

    def test_intern_returns_same_instance(self, string_pool: StringPool) -> None:
        first = string_pool.intern("".join(["Ali", "ce"]))
        second = string_pool.intern("".join(["Al", "ice"]))
        assert first == "Alice"
        assert first is second
        assert len(string_pool) == 1

    def test_long_strings_not_pooled(self) -> None:
        pool = StringPool(StringPoolConfig(max_entries=10, max_length=5))
        value = "abcdefgh"
        assert pool.intern(value) is value
        assert value not in pool
        assert len(pool) == 0

    def test_capacity_is_never_exceeded(self) -> None:
        pool = StringPool(StringPoolConfig(max_entries=3, max_length=100))
        for i in range(10):
            pool.intern(f"value-{i}")
        assert len(pool) == 3
        assert pool.is_full
        assert "value-0" in pool
        assert "value-5" not in pool

    def test_full_pool_returns_input_unchanged(self) -> None:
        pool = StringPool(StringPoolConfig(max_entries=1, max_length=100))
        pool.intern("first")
        late = "".join(["la", "te"])
        assert pool.intern(late) is late

    def test_capacity_logged_once(self, caplog: pytest.LogCaptureFixture) -> None:
        pool = StringPool(StringPoolConfig(max_entries=1, max_length=100))
        with caplog.at_level(logging.INFO, logger="sheetlens.services.string_pool"):
            for value in ("a", "b", "c"):
                pool.intern(value)

        messages = [r.getMessage() for r in caplog.records]
        assert messages == [
            "String pool reached capacity; further values are not interned | max_entries=1"
        ]

    def test_zero_capacity_pools_nothing(self) -> None:
        pool = StringPool(StringPoolConfig(max_entries=0, max_length=100))
        assert pool.intern("x") == "x"
        assert len(pool) == 0

    def test_clear(self, string_pool: StringPool) -> None:
        string_pool.intern("a")
        string_pool.clear()
        assert len(string_pool) == 0
        assert not string_pool.is_full

    def test_concurrent_interning_respects_capacity(self) -> None:
        """Many threads inserting distinct values cannot overfill the pool."""
        pool = StringPool(StringPoolConfig(max_entries=50, max_length=100))
        barrier = threading.Barrier(8)

        def worker(offset: int) -> None:
            barrier.wait()
            for i in range(100):
                pool.intern(f"t{offset}-{i}")
                pool.intern(f"shared-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(pool) == 50

    def test_concurrent_interning_yields_one_instance(self) -> None:
        pool = StringPool(StringPoolConfig(max_entries=100, max_length=100))
        results: list[str] = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            value = pool.intern("".join(["sha", "red"]))
            with lock:
                results.append(value)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert all(value is results[0] for value in results)


class TestGlobalPool:
    """Tests for the process-wide pool accessor."""

    def test_get_returns_singleton(self) -> None:
        assert get_string_pool() is get_string_pool()

    def test_reset_creates_new_instance(self) -> None:
        first = get_string_pool()
        reset_string_pool()
        assert get_string_pool() is not first
