"""Disk-based token storage for reqauth.

This package provides :class:`TokenStore`, the default
:class:`~reqauth.auth.capabilities.KeyValueStore`. It persists OAuth2
tokens between runs using :mod:`diskcache`, under the XDG cache
directory, and is controlled by the ``cache`` section of the global
configuration (:class:`~reqauth.models.CacheConfig`).
"""

from reqauth.cache.token_store import TokenStore

__all__ = ["TokenStore"]
