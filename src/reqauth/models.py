"""Canonical Pydantic models shared across all reqauth modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Wire models** -- what strategies read and produce:
    :class:`NameValue`, :class:`RequestDescriptor`, :class:`HttpResponse`,
    :class:`SigningResult`, :class:`AwsCredentials`, :class:`StoredToken`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`HttpConfig`, :class:`OAuth2Config`, :class:`CacheConfig`,
    :class:`GlobalConfig`, and :class:`SigningProfile`.

Wire models are frozen: a strategy receives a :class:`RequestDescriptor`
and can never change it in place. Patches travel back as a
:class:`SigningResult` and are merged by
:func:`~reqauth.auth.manager.apply_signing_result`.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

from pydantic import BaseModel, ConfigDict, Field


# --- Wire models ---


class NameValue(BaseModel):
    """A single ordered ``(name, value)`` pair -- a header or query parameter."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class RequestDescriptor(BaseModel):
    """The outgoing HTTP request a strategy signs.

    ``headers`` and ``query`` keep their order and may repeat names.
    ``query`` holds parameters the caller will append to ``url`` in addition
    to whatever query string ``url`` already carries.

    Example::

        RequestDescriptor(
            method="POST",
            url="https://api.example.com/items?page=2",
            headers=[NameValue(name="Content-Type", value="application/json")],
        )
    """

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str
    headers: list[NameValue] = Field(default_factory=list)
    query: list[NameValue] = Field(default_factory=list)
    body: Optional[str] = Field(
        default=None, description="Request body; only auxiliary requests carry one"
    )

    def get_header(self, name: str) -> Optional[str]:
        """Return the first value of header *name* (case-insensitive), or ``None``."""
        values = self.get_header_values(name)
        return values[0] if values else None

    def get_header_values(self, name: str) -> list[str]:
        """Return every value of header *name* (case-insensitive) in order."""
        lowered = name.lower()
        return [h.value for h in self.headers if h.name.lower() == lowered]

    def query_items(self) -> list[tuple[str, str]]:
        """Return the URL's query parameters followed by :attr:`query`, decoded."""
        items = parse_qsl(urlsplit(self.url).query, keep_blank_values=True)
        items.extend((q.name, q.value) for q in self.query)
        return items

    def full_url(self) -> str:
        """Return :attr:`url` with :attr:`query` appended to its query string."""
        if not self.query:
            return self.url
        extra = urlencode([(q.name, q.value) for q in self.query])
        separator = "&" if urlsplit(self.url).query else "?"
        return f"{self.url}{separator}{extra}"


class HttpResponse(BaseModel):
    """Response returned by an auxiliary request sender.

    Header names keep their original case; lookups are case-insensitive and
    return every instance so that multi-valued headers such as
    ``WWW-Authenticate`` survive intact.
    """

    status: int
    headers: list[NameValue] = Field(default_factory=list)
    body: str = ""

    def get_header_values(self, name: str) -> list[str]:
        """Return every value of header *name* (case-insensitive) in order."""
        lowered = name.lower()
        return [h.value for h in self.headers if h.name.lower() == lowered]

    def json_body(self) -> Any:
        """Decode :attr:`body` as JSON.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        return json.loads(self.body)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300


class SigningResult(BaseModel):
    """Header and query-parameter patch produced by a strategy.

    A field left as ``None`` means "no change requested"; it never means
    "clear what is there".

    Example::

        result = SigningResult.header("Authorization", "Basic Og==")
        assert result.set_query_parameters is None
    """

    model_config = ConfigDict(frozen=True)

    set_headers: Optional[list[NameValue]] = None
    set_query_parameters: Optional[list[NameValue]] = None

    @classmethod
    def header(cls, name: str, value: str) -> SigningResult:
        """Build a result that sets exactly one header."""
        return cls(set_headers=[NameValue(name=name, value=value)])

    @classmethod
    def query_parameter(cls, name: str, value: str) -> SigningResult:
        """Build a result that sets exactly one query parameter."""
        return cls(set_query_parameters=[NameValue(name=name, value=value)])


class AwsCredentials(BaseModel):
    """Access key pair resolved from a named AWS profile or given explicitly."""

    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None


class StoredToken(BaseModel):
    """An OAuth2 token persisted in the token store between signing attempts.

    Attributes:
        access_token: The value sent to the server (access or id token).
        refresh_token: Optional refresh token for silent renewal.
        token_type: ``token_type`` from the token endpoint, if any.
        expires_at: UTC expiry. ``None`` means the token never expires.
        response: The raw token endpoint response.
    """

    access_token: str
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    response: dict[str, Any] = Field(default_factory=dict)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return now >= expires


# --- Configuration models ---


class HttpConfig(BaseModel):
    """Settings for auxiliary requests issued by strategies (NTLM probe, token exchange)."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OAuth2Config(BaseModel):
    """Settings for the interactive OAuth2 redirect surface."""

    redirect_timeout_seconds: int = Field(
        default=300, description="How long to wait for the authorization redirect"
    )
    callback_port: int = Field(
        default=0, description="Loopback callback port (0 picks a free port)"
    )


class CacheConfig(BaseModel):
    """Token store and credential cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Persist OAuth2 tokens between runs")
    ttl_seconds: int = Field(
        default=900, description="Lifetime of cached resolved profile credentials"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/reqauth/config.json``.

    Loaded and saved by :func:`~reqauth.config.load_global_config` and
    :func:`~reqauth.config.save_global_config`. See
    :func:`~reqauth.config.resolve_config` for the full precedence chain.
    """

    default_profile: Optional[str] = None
    log_level: str = Field(default="WARNING", description="Library log level")
    http: HttpConfig = Field(default_factory=HttpConfig)
    oauth2: OAuth2Config = Field(default_factory=OAuth2Config)
    cache: CacheConfig = Field(default_factory=CacheConfig)


class SigningProfile(BaseModel):
    """A saved strategy configuration stored under the ``profiles/`` directory.

    ``values`` holds literal parameter values. ``secrets`` maps parameter
    names to credential sources (``env:VAR``, ``file:/path``, ``prompt``)
    that are resolved at signing time by
    :func:`~reqauth.config.resolve_credential` so that secrets never land in
    the profile file.

    Extra fields are preserved and accessible via ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    strategy: str = Field(description="Strategy name: basic, jwt, oauth1, awsv4, windows, oauth2")
    values: dict[str, Any] = Field(default_factory=dict)
    secrets: dict[str, str] = Field(
        default_factory=dict, description="Parameter name -> credential source"
    )
    context_id: Optional[str] = Field(
        default=None, description="Namespace for stored OAuth2 tokens (defaults to name)"
    )
