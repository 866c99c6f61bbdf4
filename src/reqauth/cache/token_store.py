"""Disk-backed key-value store for OAuth2 tokens.

Uses :mod:`diskcache` to persist small JSON-compatible values on the
filesystem. Keys are hashed with SHA-256 so that arbitrary key strings
(which may embed client IDs or URLs) never appear on disk.

When caching is disabled in :class:`~reqauth.models.CacheConfig` every
read misses and every write is dropped, so strategies behave as if no
store were configured.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Optional

import diskcache

from reqauth.auth.capabilities import KeyValueStore
from reqauth.models import CacheConfig


class TokenStore(KeyValueStore):
    """Persistent :class:`~reqauth.auth.capabilities.KeyValueStore`.

    Args:
        cache_dir: Root directory; a ``tokens/`` subdirectory is created.
        config: Cache configuration (only ``enabled`` is consulted).

    Example::

        store = TokenStore("/tmp/reqauth-cache", CacheConfig())
        store.set("oauth2:abc", {"access_token": "t"}, expire=3600)
        store.get("oauth2:abc")
    """

    def __init__(self, cache_dir: str | Path, config: Optional[CacheConfig] = None) -> None:
        self._config = config or CacheConfig()
        self._cache_dir = Path(cache_dir)
        self._cache: Optional[diskcache.Cache] = None
        if self._config.enabled:
            self._cache = diskcache.Cache(str(self._cache_dir / "tokens"))

    @staticmethod
    def _make_key(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        if self._cache is None:
            return None
        return self._cache.get(self._make_key(key))

    def set(self, key: str, value: Any, expire: Optional[float] = None) -> None:
        """Store *value*; *expire* is a lifetime in seconds (``None`` keeps it forever)."""
        if self._cache is None:
            return
        self._cache.set(self._make_key(key), value, expire=expire)

    def delete(self, key: str) -> None:
        if self._cache is None:
            return
        self._cache.delete(self._make_key(key))

    def clear(self) -> int:
        """Remove every stored token and return how many were removed."""
        if self._cache is None:
            return 0
        return self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return ``enabled`` and, when enabled, ``size`` and ``directory``."""
        if self._cache is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "size": len(self._cache),
            "directory": str(self._cache_dir / "tokens"),
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`."""
        if self._cache is not None:
            self._cache.close()
