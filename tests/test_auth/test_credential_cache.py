"""Tests for the process-wide credential cache."""

from __future__ import annotations

import threading
import time

import pytest

from reqauth.auth.credential_cache import (
    CredentialCache,
    get_credential_cache,
    make_key,
    reset_credential_cache,
    set_credential_cache,
)


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestMakeKey:
    def test_stable(self) -> None:
        assert make_key("aws", "prod") == make_key("aws", "prod")

    def test_distinct(self) -> None:
        assert make_key("aws", "prod") != make_key("aws", "dev")

    def test_is_hex_digest(self) -> None:
        key = make_key("secret-value")
        assert len(key) == 64
        assert "secret-value" not in key


class TestCredentialCache:
    def test_factory_called_once(self) -> None:
        cache = CredentialCache()
        calls = []
        for _ in range(3):
            value = cache.get_or_create(("aws", "prod"), lambda: calls.append(1) or "creds")
        assert value == "creds"
        assert len(calls) == 1
        assert len(cache) == 1

    def test_failure_not_cached(self) -> None:
        cache = CredentialCache()

        def boom() -> str:
            raise RuntimeError("unreadable")

        with pytest.raises(RuntimeError):
            cache.get_or_create("k", boom)
        assert len(cache) == 0
        assert cache.get_or_create("k", lambda: "ok") == "ok"

    def test_ttl_expiry(self) -> None:
        clock = _Clock()
        cache = CredentialCache(ttl_seconds=10, clock=clock)
        cache.get_or_create("k", lambda: "first")
        clock.now = 9.9
        assert cache.get_or_create("k", lambda: "second") == "first"
        clock.now = 10.0
        assert cache.get_or_create("k", lambda: "second") == "second"

    def test_invalidate(self) -> None:
        cache = CredentialCache()
        cache.get_or_create("k", lambda: "first")
        cache.invalidate("k")
        assert cache.get_or_create("k", lambda: "second") == "second"

    def test_clear(self) -> None:
        cache = CredentialCache()
        cache.get_or_create("a", lambda: 1)
        cache.get_or_create("b", lambda: 2)
        cache.clear()
        assert len(cache) == 0

    def test_concurrent_callers_share_one_factory_call(self) -> None:
        cache = CredentialCache()
        calls = []
        results = []

        def factory() -> str:
            calls.append(1)
            time.sleep(0.05)
            return "creds"

        def worker() -> None:
            results.append(cache.get_or_create("shared", factory))

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(calls) == 1
        assert results == ["creds"] * 5
        assert cache._locks == {}

    def test_per_key_locks_released(self) -> None:
        cache = CredentialCache()
        for i in range(50):
            cache.get_or_create(("aws", f"profile-{i}"), lambda: "creds")
        cache.invalidate(("aws", "profile-0"))

        def boom() -> str:
            raise RuntimeError("unreadable")

        with pytest.raises(RuntimeError):
            cache.get_or_create("k", boom)
        assert len(cache) == 49
        assert cache._locks == {}


class TestGlobalCache:
    def test_get_creates_once(self) -> None:
        reset_credential_cache()
        assert get_credential_cache() is get_credential_cache()

    def test_set_replaces(self) -> None:
        cache = CredentialCache(ttl_seconds=5)
        set_credential_cache(cache)
        assert get_credential_cache() is cache
