"""Process-wide cache for resolved credentials.

Resolving a named AWS profile reads INI files on every call; signing many
requests in one process should do that once. :class:`CredentialCache` is
an idempotent get-or-create map keyed by a SHA-256 hash of the
authentication material, so raw secrets never become dictionary keys.

Concurrent lookups for the same key run the factory once; the other
callers block on a per-key lock and receive the same value. A factory
that raises leaves nothing behind, so the next lookup tries again.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def make_key(*parts: Any) -> str:
    """Hash *parts* into a stable cache key."""
    raw = json.dumps(parts, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class CredentialCache:
    """Thread-safe get-or-create store with optional TTL.

    Args:
        ttl_seconds: Lifetime of an entry; ``None`` keeps entries until
            invalidated.
        clock: Monotonic time source, injectable for tests.

    Example::

        cache = CredentialCache(ttl_seconds=900)
        creds = cache.get_or_create(("aws", "prod"), lambda: resolver.resolve("prod"))
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, Optional[float]]] = {}
        # digest -> (lock, callers holding or waiting on it)
        self._locks: dict[str, tuple[threading.Lock, int]] = {}
        self._guard = threading.Lock()

    @contextmanager
    def _locked(self, digest: str) -> Iterator[None]:
        """Hold the per-key lock; it is dropped once no caller needs it."""
        with self._guard:
            lock, users = self._locks.get(digest, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[digest] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                _, users = self._locks[digest]
                if users == 1:
                    del self._locks[digest]
                else:
                    self._locks[digest] = (lock, users - 1)

    def _lookup(self, digest: str) -> tuple[bool, Any]:
        entry = self._entries.get(digest)
        if entry is None:
            return False, None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[digest]
            return False, None
        return True, value

    def get_or_create(self, key: Any, factory: Callable[[], T]) -> T:
        """Return the cached value for *key*, calling *factory* on a miss.

        Args:
            key: Any JSON-serialisable authentication material.
            factory: Zero-argument callable producing the value.

        Returns:
            The cached or freshly created value.

        Raises:
            Exception: Whatever *factory* raises; nothing is cached then.
        """
        digest = make_key(key)
        with self._locked(digest):
            found, value = self._lookup(digest)
            if found:
                logger.debug("Credential cache hit for %s", digest[:12])
                return value
            logger.debug("Credential cache miss for %s", digest[:12])
            value = factory()
            expires_at = self._clock() + self._ttl if self._ttl is not None else None
            self._entries[digest] = (value, expires_at)
            return value

    def invalidate(self, key: Any) -> None:
        """Drop the entry for *key*, if any."""
        digest = make_key(key)
        with self._locked(digest):
            self._entries.pop(digest, None)

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_default_cache: Optional[CredentialCache] = None
_default_guard = threading.Lock()


def get_credential_cache() -> CredentialCache:
    """Return the process-wide :class:`CredentialCache`, creating it on first use."""
    global _default_cache
    with _default_guard:
        if _default_cache is None:
            _default_cache = CredentialCache()
        return _default_cache


def set_credential_cache(cache: CredentialCache) -> None:
    """Replace the process-wide cache (the CLI installs one with the configured TTL)."""
    global _default_cache
    with _default_guard:
        _default_cache = cache


def reset_credential_cache() -> None:
    """Forget the process-wide cache. Intended for tests."""
    global _default_cache
    with _default_guard:
        _default_cache = None
