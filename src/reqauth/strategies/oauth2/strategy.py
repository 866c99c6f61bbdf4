"""OAuth 2.0 Authorization Code strategy with optional PKCE.

This module provides :class:`OAuth2AuthCodeStrategy`, which implements the
``oauth2`` strategy (:rfc:`6749` section 4.1, PKCE per :rfc:`7636`):

1. Reuse a stored token when it has not expired; refresh an expired one
   when a refresh token is available.
2. Open the authorization URL through the ``redirect`` capability and
   watch every navigation for ``code`` or ``error``.
3. Exchange the code at the token endpoint through the ``http``
   capability, with client credentials in the form body or as HTTP Basic.
4. Persist the token and return ``Authorization: <prefix> <token>``.

With ``provisional_code`` enabled the authorization code itself is
returned at once as the bearer value and the exchange finishes in the
background through :meth:`SigningContext.run_in_background`; callers join
it before closing the token store. An exchange failure is then only logged.
"""

from __future__ import annotations

import base64
import enum
import hashlib
import json
import logging
import secrets
import threading
from datetime import datetime, timedelta
from typing import Any, Optional
from urllib.parse import parse_qs, parse_qsl, urlencode, urlsplit, urlunsplit

from reqauth.auth.base import SigningContext, SigningStrategy
from reqauth.auth.capabilities import KeyValueStore
from reqauth.auth.params import (
    ParameterKind,
    ParameterSchema,
    ParameterSpec,
    ResolvedValues,
    SelectOption,
    hidden_unless,
)
from reqauth.exceptions import (
    InvalidConfigurationError,
    MissingCredentialError,
    SigningError,
    UserCancelledError,
)
from reqauth.models import HttpResponse, NameValue, RequestDescriptor, SigningResult, StoredToken
from reqauth.strategies.basic.strategy import basic_credentials

logger = logging.getLogger(__name__)

GRANT_AUTHORIZATION_CODE = "authorization_code"
PKCE_S256 = "S256"
PKCE_PLAIN = "plain"

_LOOPBACK_ALIASES = {"localhost": "127.0.0.1"}


class OAuth2State(str, enum.Enum):
    """Progress of an interactive authorization attempt."""

    AWAITING_REDIRECT = "awaiting_redirect"
    CODE_RECEIVED = "code_received"
    EXCHANGING_TOKEN = "exchanging_token"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_pkce_pair(
    method: str = PKCE_S256, verifier_bytes: Optional[bytes] = None
) -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge.

    Args:
        method: ``S256`` or ``plain``.
        verifier_bytes: Random bytes for the verifier; 32 fresh bytes when
            ``None``, giving a 43-character verifier.

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    if verifier_bytes is None:
        verifier_bytes = secrets.token_bytes(32)
    code_verifier = _b64url(verifier_bytes)
    if method == PKCE_PLAIN:
        return code_verifier, code_verifier
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return code_verifier, _b64url(digest)


def token_store_key(context_id: str, values: ResolvedValues) -> str:
    """Return the store key under which the token for *values* is persisted."""
    material = [
        context_id,
        values.get("client_id") or "",
        values.get("access_token_url") or "",
        values.get("authorization_url") or "",
    ]
    digest = hashlib.sha256(json.dumps(material).encode("utf-8")).hexdigest()
    return f"oauth2:{digest}"


def build_authorization_url(base_url: str, params: list[tuple[str, str]]) -> str:
    """Append *params* to *base_url*, keeping any query it already has."""
    parts = urlsplit(base_url)
    query = parse_qsl(parts.query, keep_blank_values=True) + params
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def parse_token_response(response: HttpResponse) -> dict[str, Any]:
    """Decode a token endpoint body as JSON, falling back to form encoding."""
    try:
        data = response.json_body()
        if isinstance(data, dict):
            return data
    except ValueError:
        pass
    return dict(parse_qsl(response.body, keep_blank_values=True))


def _redirect_target(url: str) -> tuple[str, str, Optional[int], str]:
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    return (
        parts.scheme.lower(),
        _LOOPBACK_ALIASES.get(host, host),
        parts.port,
        parts.path.rstrip("/"),
    )


class _RedirectObserver:
    """Collects the outcome of a redirect surface; thread-safe."""

    def __init__(self, redirect_uri: Optional[str], expected_state: Optional[str]) -> None:
        self._redirect = _redirect_target(redirect_uri) if redirect_uri else None
        self._expected_state = expected_state
        self._lock = threading.Lock()
        self.done = threading.Event()
        self.code: Optional[str] = None
        self.error: Optional[str] = None
        self.cancelled = False

    def on_navigate(self, url: str) -> None:
        query = parse_qs(urlsplit(url).query)
        with self._lock:
            if self.done.is_set():
                return
            if "error" in query:
                self.error = query["error"][0]
                description = query.get("error_description", [""])[0]
                if description:
                    self.error += f" - {description}"
                self.done.set()
                return
            if "code" not in query:
                return
            if self._redirect is not None and _redirect_target(url) != self._redirect:
                logger.debug("Ignoring code on non-redirect URL %s", url)
                return
            returned_state = query.get("state", [None])[0]
            if self._expected_state and returned_state and returned_state != self._expected_state:
                self.error = "state mismatch in authorization response"
            else:
                self.code = query["code"][0]
            self.done.set()

    def on_close(self) -> None:
        with self._lock:
            if not self.done.is_set():
                self.cancelled = True
                self.done.set()


class OAuth2AuthCodeStrategy(SigningStrategy):
    """Authenticate via the OAuth2 Authorization Code grant."""

    @property
    def name(self) -> str:
        return "oauth2"

    @property
    def label(self) -> str:
        return "OAuth 2.0"

    def parameters(self) -> ParameterSchema:
        return ParameterSchema(
            [
                ParameterSpec(
                    "grant_type",
                    ParameterKind.SELECT,
                    label="Grant Type",
                    default=GRANT_AUTHORIZATION_CODE,
                    options=[SelectOption(GRANT_AUTHORIZATION_CODE, "Authorization Code")],
                ),
                ParameterSpec(
                    "authorization_url",
                    label="Authorization URL",
                    placeholder="https://example.com/oauth/authorize",
                ),
                ParameterSpec(
                    "access_token_url",
                    label="Access Token URL",
                    placeholder="https://example.com/oauth/token",
                ),
                ParameterSpec("client_id", label="Client ID"),
                ParameterSpec(
                    "client_secret", ParameterKind.SECRET, label="Client Secret", optional=True
                ),
                ParameterSpec(
                    "redirect_uri",
                    label="Redirect URI",
                    optional=True,
                    description="Defaults to the local callback address",
                ),
                ParameterSpec("scope", label="Scope", optional=True),
                ParameterSpec("state", label="State", optional=True),
                ParameterSpec(
                    "use_pkce", ParameterKind.CHECKBOX, label="Use PKCE", default=False
                ),
                ParameterSpec(
                    "pkce_method",
                    ParameterKind.SELECT,
                    label="Code Challenge Method",
                    default=PKCE_S256,
                    options=[SelectOption(PKCE_S256, "SHA-256"), SelectOption(PKCE_PLAIN, "Plain")],
                    dynamic=hidden_unless("use_pkce", True),
                ),
                ParameterSpec(
                    "advanced",
                    ParameterKind.GROUP,
                    label="Advanced",
                    children=[
                        ParameterSpec("audience", label="Audience", optional=True, advanced=True),
                        ParameterSpec(
                            "credentials",
                            ParameterKind.SELECT,
                            label="Send Credentials",
                            default="body",
                            options=[
                                SelectOption("body", "In Request Body"),
                                SelectOption("basic", "As Basic Authentication"),
                            ],
                            advanced=True,
                        ),
                        ParameterSpec(
                            "token_name",
                            ParameterKind.SELECT,
                            label="Token for authorization",
                            default="access_token",
                            options=[
                                SelectOption("access_token"),
                                SelectOption("id_token"),
                            ],
                            advanced=True,
                        ),
                        ParameterSpec(
                            "header_prefix",
                            label="Header Prefix",
                            default="Bearer",
                            optional=True,
                            advanced=True,
                        ),
                        ParameterSpec(
                            "provisional_code",
                            ParameterKind.CHECKBOX,
                            label="Send authorization code while the exchange runs",
                            default=False,
                            advanced=True,
                        ),
                    ],
                ),
            ]
        )

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(self, context: SigningContext, values: ResolvedValues) -> SigningResult:
        store = context.capabilities.store
        key = token_store_key(context.context_id, values)

        stored = self._load_token(store, key)
        if stored is not None:
            if not stored.is_expired(context.now()):
                logger.debug("Reusing stored OAuth2 token for '%s'", context.context_id)
                return self._result(values, stored.access_token)
            if stored.refresh_token:
                try:
                    token = self._refresh(context, values, stored)
                    self._save_token(store, key, token)
                    return self._result(values, token.access_token)
                except SigningError as exc:
                    logger.warning("OAuth2 token refresh failed, re-authorizing: %s", exc)
            if store is not None:
                store.delete(key)

        return self._authorize(context, values, store, key)

    def _result(self, values: ResolvedValues, token: str) -> SigningResult:
        prefix = values.get("header_prefix")
        if prefix is None:
            prefix = "Bearer"
        return SigningResult.header("Authorization", f"{prefix} {token}".strip())

    def _log_state(self, state: OAuth2State, context: SigningContext) -> None:
        logger.debug("OAuth2 flow for '%s': %s", context.context_id, state.value)

    # ------------------------------------------------------------------
    # Interactive authorization
    # ------------------------------------------------------------------

    def _authorize(
        self,
        context: SigningContext,
        values: ResolvedValues,
        store: Optional[KeyValueStore],
        key: str,
    ) -> SigningResult:
        redirect = context.capabilities.redirect
        if redirect is None:
            raise InvalidConfigurationError("OAuth2 requires a redirect host capability")
        if context.capabilities.http is None:
            raise InvalidConfigurationError("OAuth2 requires an HTTP sender capability")

        redirect_uri = values.get("redirect_uri") or redirect.callback_url()
        params: list[tuple[str, str]] = [
            ("response_type", "code"),
            ("client_id", values.get("client_id") or ""),
        ]
        if redirect_uri:
            params.append(("redirect_uri", redirect_uri))
        if values.get("scope"):
            params.append(("scope", values["scope"]))
        if values.get("state"):
            params.append(("state", values["state"]))
        if values.get("audience"):
            params.append(("audience", values["audience"]))

        code_verifier: Optional[str] = None
        if values.get("use_pkce"):
            method = values.get("pkce_method") or PKCE_S256
            code_verifier, challenge = generate_pkce_pair(method, context.random_bytes(32))
            params.append(("code_challenge", challenge))
            params.append(("code_challenge_method", method))

        auth_url = build_authorization_url(values["authorization_url"], params)
        code = self._wait_for_code(context, auth_url, redirect_uri, values.get("state"))
        self._log_state(OAuth2State.CODE_RECEIVED, context)

        if values.get("provisional_code"):
            context.run_in_background(
                self._exchange_in_background,
                context, values, code, code_verifier, redirect_uri, store, key,
            )
            return self._result(values, code)

        token = self._exchange(context, values, code, code_verifier, redirect_uri)
        self._save_token(store, key, token)
        self._log_state(OAuth2State.COMPLETE, context)
        return self._result(values, token.access_token)

    def _wait_for_code(
        self,
        context: SigningContext,
        auth_url: str,
        redirect_uri: Optional[str],
        expected_state: Optional[str],
    ) -> str:
        """Open the redirect surface and block until a code, error, close or timeout.

        Raises:
            UserCancelledError: If the surface closed first or the wait timed out.
            MissingCredentialError: If the provider redirected with an error.
        """
        assert context.capabilities.redirect is not None
        observer = _RedirectObserver(redirect_uri, expected_state)
        self._log_state(OAuth2State.AWAITING_REDIRECT, context)
        session = context.capabilities.redirect.open(
            auth_url, observer.on_navigate, observer.on_close
        )
        try:
            finished = observer.done.wait(context.redirect_timeout)
        finally:
            session.close()

        if not finished:
            self._log_state(OAuth2State.CANCELLED, context)
            raise UserCancelledError(
                f"Timed out after {context.redirect_timeout:g}s waiting for the authorization redirect"
            )
        if observer.cancelled:
            self._log_state(OAuth2State.CANCELLED, context)
            raise UserCancelledError("Authorization window closed")
        if observer.error or not observer.code:
            self._log_state(OAuth2State.FAILED, context)
            raise MissingCredentialError(f"OAuth2 authorization failed: {observer.error}")
        return observer.code

    # ------------------------------------------------------------------
    # Token endpoint
    # ------------------------------------------------------------------

    def _token_request(
        self,
        context: SigningContext,
        values: ResolvedValues,
        form: list[tuple[str, str]],
    ) -> dict[str, Any]:
        """POST *form* to the token endpoint and return the decoded body.

        Raises:
            MissingCredentialError: On a non-2xx status or an ``error`` field.
        """
        assert context.capabilities.http is not None
        client_id = values.get("client_id") or ""
        client_secret = values.get("client_secret") or ""
        headers = [
            NameValue(name="Content-Type", value="application/x-www-form-urlencoded"),
            NameValue(name="Accept", value="application/json"),
        ]
        if values.get("credentials") == "basic":
            headers.append(
                NameValue(name="Authorization", value=basic_credentials(client_id, client_secret))
            )
        else:
            form = [*form, ("client_id", client_id)]
            if client_secret:
                form.append(("client_secret", client_secret))

        response = context.capabilities.http.send(
            RequestDescriptor(
                method="POST",
                url=values["access_token_url"],
                headers=headers,
                body=urlencode(form),
            )
        )
        data = parse_token_response(response)
        if not response.is_success or "error" in data:
            detail = data.get("error_description") or data.get("error") or response.body
            raise MissingCredentialError(
                f"Token request failed with status {response.status}: {detail}"
            )
        return data

    def _to_token(
        self,
        context: SigningContext,
        values: ResolvedValues,
        data: dict[str, Any],
        previous_refresh: Optional[str] = None,
    ) -> StoredToken:
        token_name = values.get("token_name") or "access_token"
        token = data.get(token_name)
        if not token:
            raise MissingCredentialError(f"Token response missing '{token_name}' field")

        expires_at: Optional[datetime] = None
        expires_in = data.get("expires_in")
        if expires_in not in (None, ""):
            try:
                expires_at = context.now() + timedelta(seconds=float(expires_in))
            except (TypeError, ValueError):
                logger.warning("Ignoring non-numeric expires_in %r", expires_in)

        return StoredToken(
            access_token=str(token),
            refresh_token=data.get("refresh_token") or previous_refresh,
            token_type=data.get("token_type"),
            expires_at=expires_at,
            response=data,
        )

    def _exchange(
        self,
        context: SigningContext,
        values: ResolvedValues,
        code: str,
        code_verifier: Optional[str],
        redirect_uri: Optional[str],
    ) -> StoredToken:
        self._log_state(OAuth2State.EXCHANGING_TOKEN, context)
        form = [("grant_type", GRANT_AUTHORIZATION_CODE), ("code", code)]
        if redirect_uri:
            form.append(("redirect_uri", redirect_uri))
        if code_verifier:
            form.append(("code_verifier", code_verifier))
        try:
            data = self._token_request(context, values, form)
            return self._to_token(context, values, data)
        except SigningError:
            self._log_state(OAuth2State.FAILED, context)
            raise

    def _exchange_in_background(
        self,
        context: SigningContext,
        values: ResolvedValues,
        code: str,
        code_verifier: Optional[str],
        redirect_uri: Optional[str],
        store: Optional[KeyValueStore],
        key: str,
    ) -> None:
        try:
            token = self._exchange(context, values, code, code_verifier, redirect_uri)
            self._save_token(store, key, token)
            self._log_state(OAuth2State.COMPLETE, context)
        except SigningError as exc:
            logger.error("Background OAuth2 token exchange failed: %s", exc)

    def _refresh(
        self, context: SigningContext, values: ResolvedValues, stored: StoredToken
    ) -> StoredToken:
        if context.capabilities.http is None:
            raise InvalidConfigurationError("OAuth2 requires an HTTP sender capability")
        assert stored.refresh_token is not None
        form = [("grant_type", "refresh_token"), ("refresh_token", stored.refresh_token)]
        data = self._token_request(context, values, form)
        logger.info("Refreshed OAuth2 token for '%s'", context.context_id)
        return self._to_token(context, values, data, previous_refresh=stored.refresh_token)

    # ------------------------------------------------------------------
    # Token store
    # ------------------------------------------------------------------

    def _load_token(self, store: Optional[KeyValueStore], key: str) -> Optional[StoredToken]:
        if store is None:
            return None
        raw = store.get(key)
        if raw is None:
            return None
        try:
            return StoredToken.model_validate(raw)
        except ValueError as exc:
            logger.warning("Discarding unreadable stored token: %s", exc)
            store.delete(key)
            return None

    def _save_token(self, store: Optional[KeyValueStore], key: str, token: StoredToken) -> None:
        if store is not None:
            store.set(key, token.model_dump(mode="json"))
