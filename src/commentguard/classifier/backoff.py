"""Rate-limit backoff windows for LLM providers.

Records "do not call X until T" windows, keyed either by provider
(provider-wide backoff) or by provider + model (per-model backoff). A
window is active iff ``now < expiry``.

The tracker depends only on a small BackoffStore interface (get/set with
TTL) so the in-memory store can be swapped for a shared cache. Writes are
last-writer-wins: two evaluations racing past an expired window both call
the provider, and whichever sees the 429 re-arms the window.
"""

import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Optional

logger = logging.getLogger("commentguard.classifier.backoff")

__all__ = [
    "BackoffStore",
    "BackoffTracker",
    "InMemoryBackoffStore",
    "backoff_tracker",
    "model_key",
    "provider_key",
]

KEY_PREFIX = "commentguard_block_until"


def provider_key(provider: str) -> str:
    """Backoff key for a whole provider."""
    return f"{KEY_PREFIX}:{provider}"


def model_key(provider: str, model: str) -> str:
    """Backoff key for one model of a provider.

    Model ids contain slashes and colons, so a short digest keeps the key
    safe for any cache backend.
    """
    digest = hashlib.md5(str(model).encode("utf-8")).hexdigest()[:12]
    return f"{KEY_PREFIX}:{provider}:{digest}"


class BackoffStore(ABC):
    """Time-indexed key-value store for backoff expiries."""

    @abstractmethod
    def get(self, key: str) -> Optional[float]:
        """Return the stored expiry timestamp, or None."""

    @abstractmethod
    def set(self, key: str, expiry: float, ttl: float) -> None:
        """Store an expiry timestamp; the store may drop it after ``ttl`` seconds."""


class InMemoryBackoffStore(BackoffStore):
    """Process-local store with lazy TTL expiry."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: dict[str, tuple[float, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[float]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expiry, drop_at = entry
            if self._clock() >= drop_at:
                del self._entries[key]
                return None
            return expiry

    def set(self, key: str, expiry: float, ttl: float) -> None:
        with self._lock:
            self._entries[key] = (expiry, self._clock() + max(1.0, ttl))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class BackoffTracker:
    """Reads and writes backoff windows.

    Example:
        >>> tracker = BackoffTracker()
        >>> key = provider_key("openrouter")
        >>> tracker.block_until(key, time.time() + 30)
        >>> tracker.is_blocked(key)
        True
    """

    def __init__(
        self,
        store: Optional[BackoffStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize tracker.

        Args:
            store: Backing store (default: in-memory, sharing ``clock``)
            clock: Time source returning epoch seconds
        """
        self.clock = clock
        self.store = store if store is not None else InMemoryBackoffStore(clock)
        self._write_lock = threading.Lock()

    def blocked_until(self, key: str) -> Optional[float]:
        """Expiry of the active window for ``key``, or None if not blocked."""
        expiry = self.store.get(key)
        if expiry is None or self.clock() >= expiry:
            return None
        return expiry

    def is_blocked(self, key: str) -> bool:
        return self.blocked_until(key) is not None

    def block_until(self, key: str, expiry: float) -> None:
        """Open or extend a window. Expiries in the past are ignored."""
        now = self.clock()
        if expiry <= now:
            logger.debug("backoff_expiry_in_past", extra={"backoff_key": key, "expiry": expiry})
            return
        with self._write_lock:
            current = self.blocked_until(key)
            if current is not None and current >= expiry:
                return
            self.store.set(key, expiry, ttl=expiry - now)
        logger.info(
            "backoff_window_set",
            extra={"backoff_key": key, "expiry": expiry, "seconds": round(expiry - now, 1)},
        )

    def soonest_unblock(self, keys: Iterable[str]) -> Optional[float]:
        """Earliest expiry among the active windows of ``keys``."""
        expiries = [e for e in (self.blocked_until(k) for k in keys) if e is not None]
        return min(expiries) if expiries else None


# Global tracker instance
# Shared across all evaluations in the process
backoff_tracker = BackoffTracker()
