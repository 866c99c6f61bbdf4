"""NTLM challenge-response signing strategy.

This module provides :class:`NtlmStrategy`, which implements the
``windows`` strategy. One :meth:`~NtlmStrategy.apply` call walks the
handshake::

    INITIAL -> TYPE1_SENT -> CHALLENGE_RECEIVED -> TYPE3_COMPUTED -> COMPLETE

Any failure along the way ends in ``FAILED``.

The probe reuses the request's method and URL with only the negotiate
``Authorization`` header and ``Connection: keep-alive``. The final
result carries ``Authorization: NTLM <type3>`` and nothing else; the
caller must send the signed request on the same connection.
"""

from __future__ import annotations

import base64
import enum
import logging
from typing import Optional

from reqauth.auth.base import SigningContext, SigningStrategy
from reqauth.auth.params import ParameterKind, ParameterSchema, ParameterSpec, ResolvedValues
from reqauth.canonical import ntlm
from reqauth.exceptions import (
    InvalidConfigurationError,
    SigningComputationError,
    UpstreamChallengeMissingError,
)
from reqauth.models import HttpResponse, NameValue, RequestDescriptor, SigningResult

logger = logging.getLogger(__name__)

CHALLENGE_MISSING_MESSAGE = "Unable to find NTLM challenge in WWW-Authenticate response headers"


class NtlmState(str, enum.Enum):
    """Handshake progress of a single :meth:`NtlmStrategy.apply` call."""

    INITIAL = "initial"
    TYPE1_SENT = "type1_sent"
    CHALLENGE_RECEIVED = "challenge_received"
    TYPE3_COMPUTED = "type3_computed"
    COMPLETE = "complete"
    FAILED = "failed"


def find_ntlm_challenge(response: HttpResponse) -> Optional[str]:
    """Return the base64 payload of the first ``NTLM <token>`` challenge, if any.

    Every ``WWW-Authenticate`` instance is split on commas, so both
    repeated headers and a single comma-joined header are handled.
    """
    for header in response.get_header_values("WWW-Authenticate"):
        for part in header.split(","):
            part = part.strip()
            scheme, _, token = part.partition(" ")
            if scheme.upper() == "NTLM" and token.strip():
                return token.strip()
    return None


class NtlmStrategy(SigningStrategy):
    """Authenticate with NTLMv2 over a negotiate/challenge round trip."""

    @property
    def name(self) -> str:
        return "windows"

    @property
    def label(self) -> str:
        return "NTLM Auth"

    @property
    def short_label(self) -> str:
        return "NTLM"

    def parameters(self) -> ParameterSchema:
        return ParameterSchema(
            [
                ParameterSpec("username", label="Username", default="", optional=True),
                ParameterSpec(
                    "password", ParameterKind.SECRET, label="Password", default="", optional=True
                ),
                ParameterSpec(
                    "advanced",
                    ParameterKind.GROUP,
                    label="Advanced",
                    children=[
                        ParameterSpec("domain", label="Domain", default="", optional=True, advanced=True),
                        ParameterSpec(
                            "workstation", label="Workstation", default="", optional=True, advanced=True
                        ),
                    ],
                ),
            ]
        )

    def _transition(self, state: NtlmState, url: str) -> None:
        logger.debug("NTLM handshake for %s: %s", url, state.value)

    def apply(self, context: SigningContext, values: ResolvedValues) -> SigningResult:
        sender = context.capabilities.http
        if sender is None:
            raise InvalidConfigurationError("NTLM requires an HTTP sender capability")

        request = context.request
        username = values.get("username") or ""
        password = values.get("password") or ""
        domain = values.get("domain") or ""
        workstation = values.get("workstation") or ""

        self._transition(NtlmState.INITIAL, request.url)
        try:
            type1 = base64.b64encode(ntlm.negotiate_message(domain, workstation)).decode("ascii")
            probe = RequestDescriptor(
                method=request.method,
                url=request.url,
                query=request.query,
                headers=[
                    NameValue(name="Authorization", value=f"NTLM {type1}"),
                    NameValue(name="Connection", value="keep-alive"),
                ],
            )
            response = sender.send(probe)
            self._transition(NtlmState.TYPE1_SENT, request.url)

            encoded = find_ntlm_challenge(response)
            if encoded is None:
                raise UpstreamChallengeMissingError(CHALLENGE_MISSING_MESSAGE)
            challenge, error = ntlm.decode_challenge(encoded)
            if challenge is None:
                raise SigningComputationError(f"Invalid NTLM challenge: {error}")
            self._transition(NtlmState.CHALLENGE_RECEIVED, request.url)

            type3 = ntlm.authenticate_message(
                challenge,
                username=username,
                password=password,
                domain=domain,
                workstation=workstation,
                client_challenge=context.random_bytes(8),
                timestamp=ntlm.filetime(context.now()),
            )
            self._transition(NtlmState.TYPE3_COMPUTED, request.url)
        except Exception:
            self._transition(NtlmState.FAILED, request.url)
            raise

        self._transition(NtlmState.COMPLETE, request.url)
        value = "NTLM " + base64.b64encode(type3).decode("ascii")
        return SigningResult.header("Authorization", value)
