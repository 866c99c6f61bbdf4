"""Injected collaborators used by strategies that reach outside the process.

Strategies never open sockets, browsers or files themselves. They receive a
:class:`Capabilities` bundle on the :class:`~reqauth.auth.base.SigningContext`
and talk to four abstract collaborators:

- :class:`HttpSender` -- sends an auxiliary request (NTLM probe, OAuth2
  token exchange). Default: :class:`HttpxSender`.
- :class:`RedirectHost` -- opens an interactive browser surface and reports
  every navigation. Default: :class:`LoopbackRedirectHost`.
- :class:`ProfileCredentialResolver` -- resolves named AWS profiles.
  Default: :class:`IniProfileCredentialResolver`.
- :class:`KeyValueStore` -- small persistent store for OAuth2 tokens.
  Default: :class:`~reqauth.cache.TokenStore`.

Any member of the bundle may be ``None``; strategies that need a missing
collaborator raise :class:`~reqauth.exceptions.InvalidConfigurationError`.
"""

from __future__ import annotations

import configparser
import logging
import os
import socket
import threading
import webbrowser
from abc import ABC, abstractmethod
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlsplit

import httpx

from reqauth.exceptions import MissingCredentialError, SigningError
from reqauth.models import AwsCredentials, HttpResponse, NameValue, RequestDescriptor

logger = logging.getLogger(__name__)

NavigateCallback = Callable[[str], None]
CloseCallback = Callable[[], None]


# --- Abstract collaborators ---


class HttpSender(ABC):
    """Sends an auxiliary HTTP request and returns the full response."""

    @abstractmethod
    def send(self, request: RequestDescriptor) -> HttpResponse:
        """Send *request* without following redirects.

        Raises:
            SigningError: If the request could not be completed.
        """
        ...


class RedirectSession(ABC):
    """Handle to an open redirect surface."""

    @abstractmethod
    def close(self) -> None:
        """Close the surface and stop reporting navigation events. Idempotent."""
        ...


class RedirectHost(ABC):
    """Opens an interactive surface on a URL and reports navigation."""

    @abstractmethod
    def open(
        self,
        url: str,
        on_navigate: NavigateCallback,
        on_close: CloseCallback,
    ) -> RedirectSession:
        """Open *url* and start reporting events.

        Args:
            url: The first URL to load.
            on_navigate: Called with every URL the surface navigates to.
            on_close: Called once if the user closes the surface.

        Returns:
            A session the caller closes once it has what it needs.
        """
        ...

    def callback_url(self) -> Optional[str]:
        """Return a redirect URI this host can observe, or ``None`` if any URI works."""
        return None


class ProfileCredentialResolver(ABC):
    """Resolves AWS credentials for a named profile."""

    @abstractmethod
    def resolve(self, profile_name: Optional[str] = None) -> AwsCredentials:
        """Return credentials for *profile_name* (the default profile when ``None``).

        Raises:
            MissingCredentialError: If the profile does not exist or lacks keys.
        """
        ...

    def cache_identity(self, profile_name: Optional[str] = None) -> list[Any]:
        """Return what distinguishes this lookup in a credential cache.

        Two lookups with equal identities must resolve the same credentials.
        The default ties the entry to this resolver instance.
        """
        return [type(self).__qualname__, id(self), profile_name]

    def list_profiles(self) -> list[str]:
        return []


class KeyValueStore(ABC):
    """Small persistent key-value store with optional expiry."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]: ...

    @abstractmethod
    def set(self, key: str, value: Any, expire: Optional[float] = None) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...


@dataclass
class Capabilities:
    """Bundle of collaborators handed to every strategy.

    Attributes:
        http: Auxiliary request sender (NTLM, OAuth2).
        redirect: Interactive redirect surface (OAuth2).
        profiles: Named-profile credential resolver (AWS).
        store: Persistent store for OAuth2 tokens.
    """

    http: Optional[HttpSender] = None
    redirect: Optional[RedirectHost] = None
    profiles: Optional[ProfileCredentialResolver] = None
    store: Optional[KeyValueStore] = None


# --- httpx sender ---


class HttpxSender(HttpSender):
    """:class:`HttpSender` backed by :class:`httpx.Client`.

    Args:
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify TLS certificates.
        transport: Optional transport override (``httpx.MockTransport`` in tests).

    Example::

        sender = HttpxSender(timeout=10)
        response = sender.send(RequestDescriptor(url="https://example.com"))
    """

    def __init__(
        self,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._transport = transport

    def send(self, request: RequestDescriptor) -> HttpResponse:
        headers = [(h.name, h.value) for h in request.headers]
        logger.debug("Auxiliary request: %s %s", request.method, request.full_url())
        try:
            with httpx.Client(
                timeout=self._timeout,
                verify=self._verify_ssl,
                transport=self._transport,
                follow_redirects=False,
            ) as client:
                response = client.request(
                    request.method.upper(),
                    request.full_url(),
                    headers=headers,
                    content=request.body.encode("utf-8") if request.body is not None else None,
                )
        except httpx.TimeoutException as exc:
            raise SigningError(
                f"Request to {request.url} timed out after {self._timeout}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise SigningError(f"Request to {request.url} failed: {exc}") from exc

        return HttpResponse(
            status=response.status_code,
            headers=[NameValue(name=k, value=v) for k, v in response.headers.multi_items()],
            body=response.text,
        )


# --- Loopback redirect host ---


def _find_free_port() -> int:
    """Find a free TCP port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


_LOOPBACK_HOSTS = ("127.0.0.1", "localhost")


class _LoopbackSession(RedirectSession):
    def __init__(self, server: HTTPServer, thread: threading.Thread) -> None:
        self._server = server
        self._thread = thread
        self._lock = threading.Lock()
        self._closed = False

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=5)
        logger.debug("Loopback callback server stopped")


class LoopbackRedirectHost(RedirectHost):
    """Redirect host that opens the system browser and listens on a loopback port.

    The authorization server redirects the browser to a small HTTP server
    on ``127.0.0.1``; every request it receives is reported as a
    navigation. When the authorization URL already carries a loopback
    ``redirect_uri`` the server listens on that URI's port, otherwise on
    the port reported by :meth:`callback_url`.

    A loopback host cannot tell when the user closes a browser tab, so
    ``on_close`` only fires when no browser could be launched.

    Args:
        port: Port to listen on; ``0`` picks a free port.
        path: Callback path used by :meth:`callback_url`.
        open_browser: Replacement for :func:`webbrowser.open`.
    """

    def __init__(
        self,
        port: int = 0,
        path: str = "/callback",
        open_browser: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        self._port = port
        self._path = path
        self._open_browser = open_browser

    def callback_url(self) -> Optional[str]:
        if not self._port:
            self._port = _find_free_port()
        return f"http://127.0.0.1:{self._port}{self._path}"

    def _listen_port(self, url: str) -> int:
        redirect = parse_qs(urlsplit(url).query).get("redirect_uri", [""])[0]
        parts = urlsplit(redirect)
        if parts.hostname in _LOOPBACK_HOSTS and parts.port:
            return parts.port
        if not self._port:
            self._port = _find_free_port()
        return self._port

    def open(
        self,
        url: str,
        on_navigate: NavigateCallback,
        on_close: CloseCallback,
    ) -> RedirectSession:
        port = self._listen_port(url)

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                on_navigate(f"http://127.0.0.1:{port}{self.path}")
                body = (
                    "Authorization received. You can close this window "
                    "and return to the terminal."
                )
                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(
                    f"<html><body><h2>{body}</h2></body></html>".encode("utf-8")
                )

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("Callback server: " + format, *args)

        server = HTTPServer(("127.0.0.1", port), CallbackHandler)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        logger.info("Listening for the authorization redirect on port %d", port)

        def launch() -> None:
            if not self._open_browser(url):
                logger.warning("Could not open a browser. Visit this URL: %s", url)
                on_close()

        threading.Thread(target=launch, daemon=True).start()
        return _LoopbackSession(server, thread)


# --- AWS shared-config resolver ---


class IniProfileCredentialResolver(ProfileCredentialResolver):
    """Reads AWS profiles from the shared credentials and config INI files.

    Paths default to ``~/.aws/credentials`` and ``~/.aws/config`` and honour
    ``AWS_SHARED_CREDENTIALS_FILE`` and ``AWS_CONFIG_FILE``. The default
    profile name comes from ``AWS_PROFILE``, falling back to ``default``.
    Values in the credentials file win over the config file.
    """

    def __init__(
        self,
        credentials_file: Optional[Path] = None,
        config_file: Optional[Path] = None,
    ) -> None:
        self._credentials_file = credentials_file
        self._config_file = config_file

    def _credentials_path(self) -> Path:
        if self._credentials_file is not None:
            return self._credentials_file
        env = os.environ.get("AWS_SHARED_CREDENTIALS_FILE")
        return Path(env).expanduser() if env else Path.home() / ".aws" / "credentials"

    def _config_path(self) -> Path:
        if self._config_file is not None:
            return self._config_file
        env = os.environ.get("AWS_CONFIG_FILE")
        return Path(env).expanduser() if env else Path.home() / ".aws" / "config"

    @staticmethod
    def _read(path: Path) -> configparser.ConfigParser:
        parser = configparser.ConfigParser(interpolation=None)
        if path.is_file():
            try:
                parser.read(path, encoding="utf-8")
            except configparser.Error as exc:
                raise MissingCredentialError(
                    f"Cannot parse AWS shared file {path}: {exc}"
                ) from exc
        return parser

    def cache_identity(self, profile_name: Optional[str] = None) -> list[Any]:
        # Instances reading the same files share entries.
        name = profile_name or os.environ.get("AWS_PROFILE") or "default"
        return [str(self._credentials_path()), str(self._config_path()), name]

    def _sections(self) -> dict[str, dict[str, str]]:
        profiles: dict[str, dict[str, str]] = {}
        config = self._read(self._config_path())
        for section in config.sections():
            name = section[len("profile "):] if section.startswith("profile ") else section
            profiles.setdefault(name, {}).update(config[section])
        credentials = self._read(self._credentials_path())
        for section in credentials.sections():
            profiles.setdefault(section, {}).update(credentials[section])
        return profiles

    def resolve(self, profile_name: Optional[str] = None) -> AwsCredentials:
        name = profile_name or os.environ.get("AWS_PROFILE") or "default"
        section = self._sections().get(name)
        if section is None:
            raise MissingCredentialError(f"AWS profile '{name}' not found")
        access_key = section.get("aws_access_key_id")
        secret_key = section.get("aws_secret_access_key")
        if not access_key or not secret_key:
            raise MissingCredentialError(
                f"AWS profile '{name}' has no aws_access_key_id/aws_secret_access_key"
            )
        return AwsCredentials(
            access_key_id=access_key,
            secret_access_key=secret_key,
            session_token=section.get("aws_session_token") or None,
        )

    def list_profiles(self) -> list[str]:
        return sorted(self._sections())
