"""Bounded, thread-safe interning of repeated cell text.

Spreadsheets repeat the same short labels thousands of times; routing text
through one shared pool keeps a single copy of each. The pool never evicts:
once it reaches its capacity new text is simply returned unpooled.
"""

import threading
from dataclasses import dataclass, field

from sheetlens.config import settings
from sheetlens.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class StringPoolConfig:
    """Limits for the string pool."""

    max_entries: int = field(default_factory=lambda: settings.string_pool_max_entries)
    max_length: int = field(default_factory=lambda: settings.string_pool_max_length)


class StringPool:
    """Concurrent get-or-insert cache for short strings.

    The capacity check and the insert happen under the same lock, so
    concurrent loaders can never push the pool past ``max_entries``.
    """

    def __init__(self, config: StringPoolConfig | None = None) -> None:
        """Initialize the pool.

        Args:
            config: Optional limits. Uses settings defaults if not provided.
        """
        self.config = config or StringPoolConfig()
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()
        self._capacity_logged = False

    def intern(self, value: str) -> str:
        """Return the pooled instance of ``value``.

        Text longer than ``max_length`` and text arriving after the pool is
        full is returned as-is.

        Args:
            value: Text to deduplicate.

        Returns:
            A string equal to ``value``; the same object for repeated calls
            while the text is pooled.
        """
        if len(value) > self.config.max_length:
            return value

        pooled = self._entries.get(value)
        if pooled is not None:
            return pooled

        with self._lock:
            pooled = self._entries.get(value)
            if pooled is not None:
                return pooled
            if len(self._entries) >= self.config.max_entries:
                if not self._capacity_logged:
                    self._capacity_logged = True
                    logger.info(
                        "String pool reached capacity; further values are not interned",
                        max_entries=self.config.max_entries,
                    )
                return value
            self._entries[value] = value
            return value

    def __contains__(self, value: object) -> bool:
        return value in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_full(self) -> bool:
        return len(self._entries) >= self.config.max_entries

    def clear(self) -> None:
        """Drop every pooled string."""
        with self._lock:
            self._entries.clear()
            self._capacity_logged = False


_string_pool: StringPool | None = None
_pool_init_lock = threading.Lock()


def get_string_pool() -> StringPool:
    """Get the global string pool instance.

    Creates the instance on first call (lazy initialization).

    Returns:
        The process-wide StringPool shared by all readers.
    """
    global _string_pool
    if _string_pool is None:
        with _pool_init_lock:
            if _string_pool is None:
                _string_pool = StringPool()
    return _string_pool


def reset_string_pool() -> None:
    """Reset the global string pool. Used primarily for testing."""
    global _string_pool
    with _pool_init_lock:
        _string_pool = None
