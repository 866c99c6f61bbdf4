"""Shared test fixtures for reqauth.

Provides isolated config environments, output state management, and
in-memory fakes for the capabilities strategies talk to (HTTP sender,
redirect host, AWS profile resolver, key-value store). These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import logging
import struct
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Union

import pytest

from reqauth.auth.capabilities import (
    KeyValueStore,
    ProfileCredentialResolver,
    RedirectHost,
    RedirectSession,
)
from reqauth.auth.credential_cache import reset_credential_cache
from reqauth.canonical import ntlm
from reqauth.exceptions import MissingCredentialError
from reqauth.models import AwsCredentials, HttpResponse, NameValue, RequestDescriptor
from reqauth.output import OutputFormat, OutputManager, reset_output, set_output


FIXED_NOW = datetime(2015, 8, 30, 12, 36, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_globals_between_tests() -> None:
    """Reset the global OutputManager and credential cache after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    The credential cache would otherwise leak resolved AWS profiles from
    one test into the next. The CLI's log handler is detached so that
    ``caplog`` sees library records again.
    """
    yield
    reset_output()
    reset_credential_cache()
    logger = logging.getLogger("reqauth")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


def make_response(
    status: int = 200,
    headers: Optional[list[tuple[str, str]]] = None,
    body: str = "",
) -> HttpResponse:
    return HttpResponse(
        status=status,
        headers=[NameValue(name=n, value=v) for n, v in headers or []],
        body=body,
    )


class FakeSender:
    """HttpSender returning canned responses and recording every request.

    *responses* is either a list consumed in order or a callable mapping a
    request to a response.
    """

    def __init__(
        self,
        responses: Union[list[HttpResponse], Callable[[RequestDescriptor], HttpResponse]],
    ) -> None:
        self._responses = responses
        self.requests: list[RequestDescriptor] = []

    def send(self, request: RequestDescriptor) -> HttpResponse:
        self.requests.append(request)
        if callable(self._responses):
            return self._responses(request)
        return self._responses.pop(0)


class FakeSession(RedirectSession):
    def __init__(self) -> None:
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


class FakeRedirectHost(RedirectHost):
    """RedirectHost that replays navigations synchronously.

    Args:
        navigations: URLs reported to ``on_navigate``, in order. A callable
            receives the opened URL and returns the list.
        close: Call ``on_close`` after the navigations.
        callback: Value returned by :meth:`callback_url`.
    """

    def __init__(
        self,
        navigations: Union[list[str], Callable[[str], list[str]], None] = None,
        close: bool = False,
        callback: Optional[str] = "http://127.0.0.1:8765/callback",
    ) -> None:
        self._navigations = navigations or []
        self._close = close
        self._callback = callback
        self.opened: list[str] = []
        self.sessions: list[FakeSession] = []

    def callback_url(self) -> Optional[str]:
        return self._callback

    def open(self, url, on_navigate, on_close) -> RedirectSession:
        self.opened.append(url)
        navigations = self._navigations(url) if callable(self._navigations) else self._navigations
        for target in navigations:
            on_navigate(target)
        if self._close:
            on_close()
        session = FakeSession()
        self.sessions.append(session)
        return session


class FakeResolver(ProfileCredentialResolver):
    """ProfileCredentialResolver over an in-memory dict; counts lookups."""

    def __init__(self, profiles: dict[str, AwsCredentials], default: str = "default") -> None:
        self._profiles = profiles
        self._default = default
        self.calls: list[Optional[str]] = []

    def resolve(self, profile_name: Optional[str] = None) -> AwsCredentials:
        self.calls.append(profile_name)
        name = profile_name or self._default
        if name not in self._profiles:
            raise MissingCredentialError(f"AWS profile '{name}' not found")
        return self._profiles[name]

    def list_profiles(self) -> list[str]:
        return sorted(self._profiles)


class MemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    def set(self, key: str, value: Any, expire: Optional[float] = None) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


def fixed_random(n: int) -> bytes:
    """Deterministic stand-in for ``secrets.token_bytes``."""
    return bytes(range(n))


NTLM_SERVER_CHALLENGE = bytes.fromhex("0123456789abcdef")
# MsvAvNbDomainName "Domain", MsvAvNbComputerName "Server", MsvAvEOL
NTLM_TARGET_INFO = (
    struct.pack("<HH", 2, 12) + "Domain".encode("utf-16-le")
    + struct.pack("<HH", 1, 12) + "Server".encode("utf-16-le")
    + struct.pack("<HH", 0, 0)
)


def make_ntlm_challenge(
    flags: int = ntlm.NEGOTIATE_UNICODE | ntlm.NEGOTIATE_NTLM | ntlm.NEGOTIATE_TARGET_INFO,
    server_challenge: bytes = NTLM_SERVER_CHALLENGE,
    target_name: bytes = "Domain".encode("utf-16-le"),
    target_info: bytes = NTLM_TARGET_INFO,
) -> bytes:
    """Build a Type-2 message with the 48-byte header."""
    name_offset = 48
    info_offset = name_offset + len(target_name)
    return (
        ntlm.SIGNATURE
        + struct.pack("<I", 2)
        + struct.pack("<HHI", len(target_name), len(target_name), name_offset)
        + struct.pack("<I", flags)
        + server_challenge
        + b"\x00" * 8
        + struct.pack("<HHI", len(target_info), len(target_info), info_offset)
        + target_name
        + target_info
    )


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config. Clears REQAUTH_* and AWS_* environment variables and changes
    the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("reqauth.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "REQAUTH_PROFILE",
        "AWS_PROFILE",
        "AWS_SHARED_CREDENTIALS_FILE",
        "AWS_CONFIG_FILE",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for tests that ignore output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
