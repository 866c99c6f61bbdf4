"""HTTP Basic signing strategy.

This module provides :class:`BasicStrategy`, which implements the
``basic`` strategy. The username and password are joined with a colon,
Base64-encoded, and sent as an ``Authorization: Basic <encoded>`` header
per :rfc:`7617`. Empty values are allowed: two empty inputs produce
``Basic Og==``.
"""

from __future__ import annotations

import base64

from reqauth.auth.base import SigningContext, SigningStrategy
from reqauth.auth.params import ParameterKind, ParameterSchema, ParameterSpec, ResolvedValues
from reqauth.models import SigningResult


def basic_credentials(username: str, password: str) -> str:
    """Return the ``Basic <base64>`` header value for *username* and *password*."""
    raw = f"{username}:{password}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


class BasicStrategy(SigningStrategy):
    """Sign requests with HTTP Basic credentials. Performs no I/O."""

    @property
    def name(self) -> str:
        return "basic"

    @property
    def label(self) -> str:
        return "Basic Auth"

    @property
    def short_label(self) -> str:
        return "Basic"

    def parameters(self) -> ParameterSchema:
        return ParameterSchema(
            [
                ParameterSpec("username", label="Username", default="", optional=True),
                ParameterSpec(
                    "password",
                    ParameterKind.SECRET,
                    label="Password",
                    default="",
                    optional=True,
                ),
            ]
        )

    def apply(self, context: SigningContext, values: ResolvedValues) -> SigningResult:
        username = values.get("username") or ""
        password = values.get("password") or ""
        return SigningResult.header("Authorization", basic_credentials(username, password))
