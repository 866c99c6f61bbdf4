"""Helpers shared by the CLI commands: argument parsing and runtime wiring."""

from __future__ import annotations

from typing import Any, Optional

from reqauth.auth.capabilities import (
    Capabilities,
    HttpxSender,
    IniProfileCredentialResolver,
    LoopbackRedirectHost,
)
from reqauth.auth.credential_cache import CredentialCache, set_credential_cache
from reqauth.exceptions import InvalidUsageError
from reqauth.models import GlobalConfig, NameValue, SigningProfile


def parse_assignments(items: list[str], option: str = "--value") -> dict[str, str]:
    """Parse ``key=value`` arguments into a dict (later keys win).

    Raises:
        InvalidUsageError: If an item has no ``=`` or an empty key.
    """
    parsed: dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise InvalidUsageError(f"Expected {option} KEY=VALUE, got: {item!r}")
        parsed[key.strip()] = value
    return parsed


def parse_headers(items: list[str]) -> list[NameValue]:
    """Parse ``-H "Name: value"`` arguments, keeping order and repeats.

    Raises:
        InvalidUsageError: If an item has no colon or an empty name.
    """
    headers: list[NameValue] = []
    for item in items:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise InvalidUsageError(f"Expected -H 'Name: value', got: {item!r}")
        headers.append(NameValue(name=name.strip(), value=value.strip()))
    return headers


def build_capabilities(config: GlobalConfig) -> Capabilities:
    """Wire the default collaborators from the global configuration.

    Also installs a process-wide credential cache honouring
    ``cache.ttl_seconds``.
    """
    from reqauth.cache import TokenStore
    from reqauth.config import get_cache_dir

    set_credential_cache(CredentialCache(ttl_seconds=config.cache.ttl_seconds))
    return Capabilities(
        http=HttpxSender(timeout=config.http.timeout, verify_ssl=config.http.verify_ssl),
        redirect=LoopbackRedirectHost(port=config.oauth2.callback_port),
        profiles=IniProfileCredentialResolver(),
        store=TokenStore(get_cache_dir(), config.cache),
    )


def context_id_for(profile: Optional[SigningProfile]) -> str:
    if profile is None:
        return "default"
    return profile.context_id or profile.name


def merged_values(
    profile: Optional[SigningProfile],
    values: list[str],
    secrets: list[str],
) -> dict[str, Any]:
    """Layer CLI ``--value`` and ``--secret`` arguments over a profile's values."""
    from reqauth.config import resolve_credential, resolve_profile_values

    merged: dict[str, Any] = resolve_profile_values(profile) if profile is not None else {}
    merged.update(parse_assignments(values))
    for name, source in parse_assignments(secrets, option="--secret").items():
        merged[name] = resolve_credential(source, label=name)
    return merged
