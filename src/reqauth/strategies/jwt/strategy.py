"""Bearer JSON Web Token signing strategy.

This module provides :class:`JwtStrategy`, which implements the ``jwt``
strategy. The payload text is validated as a JSON object and signed
byte-for-byte, so the claims reach the server exactly as typed (no
``iat`` is added). HS*, RS* and ES* go through :func:`jose.jws.sign`.
python-jose produces neither RSA-PSS nor unsecured tokens, so PS* is
signed here with ``cryptography`` and ``none`` is assembled as
``header.payload.`` with an empty signature.

Placement:

* ``header`` -- ``<name>: <prefix> <token>`` (stripped, so an empty prefix
  yields the bare token). ``name`` defaults to ``Authorization``.
* ``query`` -- ``?<name>=<token>``. ``name`` defaults to ``token``.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from jose import jws
from jose.exceptions import JOSEError

from reqauth.auth.base import SigningContext, SigningStrategy
from reqauth.auth.params import (
    DisplayOverrides,
    ParameterKind,
    ParameterSchema,
    ParameterSpec,
    ResolvedValues,
    SelectOption,
    hidden_unless,
    hidden_when,
)
from reqauth.exceptions import (
    InvalidConfigurationError,
    MissingCredentialError,
    SigningComputationError,
)
from reqauth.models import SigningResult

logger = logging.getLogger(__name__)

HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]
PSS_ALGORITHMS = ["PS256", "PS384", "PS512"]
KEY_ALGORITHMS = ["RS256", "RS384", "RS512", "ES256", "ES384", "ES512", *PSS_ALGORITHMS]
NONE_ALGORITHM = "none"
ALGORITHMS = [*HMAC_ALGORITHMS, *KEY_ALGORITHMS, NONE_ALGORITHM]

_ALGORITHM_LABELS = {
    "HS256": "HS256 (HMAC + SHA-256)",
    "HS384": "HS384 (HMAC + SHA-384)",
    "HS512": "HS512 (HMAC + SHA-512)",
    "RS256": "RS256 (RSA PKCS#1 + SHA-256)",
    "RS384": "RS384 (RSA PKCS#1 + SHA-384)",
    "RS512": "RS512 (RSA PKCS#1 + SHA-512)",
    "ES256": "ES256 (ECDSA P-256 + SHA-256)",
    "ES384": "ES384 (ECDSA P-384 + SHA-384)",
    "ES512": "ES512 (ECDSA P-521 + SHA-512)",
    "PS256": "PS256 (RSA-PSS + SHA-256)",
    "PS384": "PS384 (RSA-PSS + SHA-384)",
    "PS512": "PS512 (RSA-PSS + SHA-512)",
    "none": "None (unsecured)",
}

_PSS_HASHES = {"PS256": hashes.SHA256, "PS384": hashes.SHA384, "PS512": hashes.SHA512}

DEFAULT_PAYLOAD = '{"foo": "bar"}'


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _parse_object(text: str, field: str) -> dict[str, Any]:
    try:
        parsed = json.loads(text)
    except ValueError as exc:
        raise InvalidConfigurationError(f"JWT {field} is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise InvalidConfigurationError(f"JWT {field} must be a JSON object")
    return parsed


def _signing_input(payload: str, algorithm: str, headers: Union[dict[str, Any], None]) -> str:
    # Same header layout as jose.jws: compact JSON, sorted keys.
    header = {"alg": algorithm, "typ": "JWT"}
    header.update(headers or {})
    encoded_header = _b64url(
        json.dumps(header, separators=(",", ":"), sort_keys=True).encode("utf-8")
    )
    return f"{encoded_header}.{_b64url(payload.encode('utf-8'))}"


def _sign_pss(signing_input: str, key: Union[str, bytes], algorithm: str) -> str:
    """RSASSA-PSS with MGF1 and a salt as long as the digest (RFC 7518 section 3.5)."""
    pem = key.encode("utf-8") if isinstance(key, str) else key
    try:
        private_key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningComputationError(f"Failed to sign JWT with {algorithm}: {exc}") from exc
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise SigningComputationError(f"{algorithm} requires an RSA private key")
    digest = _PSS_HASHES[algorithm]()
    signature = private_key.sign(
        signing_input.encode("ascii"),
        padding.PSS(mgf=padding.MGF1(digest), salt_length=digest.digest_size),
        digest,
    )
    return f"{signing_input}.{_b64url(signature)}"


def encode_token(
    payload: str,
    key: Union[str, bytes],
    algorithm: str = "HS256",
    headers: Union[dict[str, Any], None] = None,
) -> str:
    """Sign *payload* (JSON text) and return the compact JWS.

    Args:
        payload: JSON object text, signed exactly as given.
        key: HMAC secret or PEM private key. Ignored for ``none``.
        algorithm: One of :data:`ALGORITHMS`.
        headers: Extra token header fields.

    Raises:
        InvalidConfigurationError: For an unknown algorithm.
        SigningComputationError: If the key cannot sign with *algorithm*.
    """
    if algorithm == NONE_ALGORITHM:
        return f"{_signing_input(payload, 'none', headers)}."
    if algorithm in PSS_ALGORITHMS:
        return _sign_pss(_signing_input(payload, algorithm, headers), key, algorithm)

    if algorithm not in ALGORITHMS:
        raise InvalidConfigurationError(
            f"Unsupported JWT algorithm '{algorithm}'. Expected one of: {', '.join(ALGORITHMS)}"
        )
    try:
        return jws.sign(payload.encode("utf-8"), key, headers=headers or None, algorithm=algorithm)
    except (JOSEError, ValueError, TypeError) as exc:
        raise SigningComputationError(f"Failed to sign JWT with {algorithm}: {exc}") from exc


def _secret_overrides(values: dict[str, Any]) -> DisplayOverrides:
    algorithm = values.get("algorithm")
    if algorithm == NONE_ALGORITHM:
        return DisplayOverrides(hidden=True)
    if algorithm in KEY_ALGORITHMS:
        return DisplayOverrides(
            label="Private Key",
            description="PEM encoded private key used to sign the token",
        )
    return DisplayOverrides(label="Secret", description="Shared HMAC secret")


def _name_overrides(values: dict[str, Any]) -> DisplayOverrides:
    if values.get("location") == "query":
        return DisplayOverrides(label="Parameter Name", description="Defaults to 'token'")
    return DisplayOverrides(label="Header Name", description="Defaults to 'Authorization'")


class JwtStrategy(SigningStrategy):
    """Mint a JWT from the configured payload and attach it to the request."""

    @property
    def name(self) -> str:
        return "jwt"

    @property
    def label(self) -> str:
        return "JSON Web Token"

    @property
    def short_label(self) -> str:
        return "JWT"

    def parameters(self) -> ParameterSchema:
        return ParameterSchema(
            [
                ParameterSpec(
                    "algorithm",
                    ParameterKind.SELECT,
                    label="Algorithm",
                    default="HS256",
                    options=[SelectOption(a, _ALGORITHM_LABELS[a]) for a in ALGORITHMS],
                ),
                ParameterSpec(
                    "secret",
                    ParameterKind.SECRET,
                    label="Secret",
                    optional=True,
                    multiline=True,
                    dynamic=_secret_overrides,
                ),
                ParameterSpec(
                    "secret_base64",
                    ParameterKind.CHECKBOX,
                    label="Secret is base64 encoded",
                    default=False,
                    dynamic=hidden_unless("algorithm", *HMAC_ALGORITHMS),
                ),
                ParameterSpec(
                    "payload",
                    label="Payload",
                    description="JSON object used as the token claims",
                    default=DEFAULT_PAYLOAD,
                    optional=True,
                    multiline=True,
                ),
                ParameterSpec(
                    "advanced",
                    ParameterKind.GROUP,
                    label="Advanced",
                    children=[
                        ParameterSpec(
                            "headers",
                            label="JWT Headers",
                            description="JSON object merged into the token header",
                            default="{}",
                            optional=True,
                            multiline=True,
                            advanced=True,
                        ),
                        ParameterSpec(
                            "location",
                            ParameterKind.SELECT,
                            label="Behavior",
                            default="header",
                            options=[
                                SelectOption("header", "Insert Header"),
                                SelectOption("query", "Append Query Parameter"),
                            ],
                            advanced=True,
                        ),
                        ParameterSpec(
                            "name",
                            label="Header Name",
                            optional=True,
                            advanced=True,
                            dynamic=_name_overrides,
                        ),
                        ParameterSpec(
                            "header_prefix",
                            label="Header Prefix",
                            default="Bearer",
                            optional=True,
                            advanced=True,
                            dynamic=hidden_when("location", "query"),
                        ),
                    ],
                ),
            ]
        )

    def apply(self, context: SigningContext, values: ResolvedValues) -> SigningResult:
        algorithm = values.get("algorithm") or "HS256"
        payload = values.get("payload") or DEFAULT_PAYLOAD
        _parse_object(payload, "payload")
        extra_headers = _parse_object(values.get("headers") or "{}", "headers")

        key: Union[str, bytes] = values.get("secret") or ""
        if algorithm != NONE_ALGORITHM:
            if not key:
                raise MissingCredentialError(f"JWT algorithm {algorithm} requires a secret or key")
            if values.get("secret_base64") and algorithm in HMAC_ALGORITHMS:
                try:
                    key = base64.b64decode(key, validate=True)
                except (binascii.Error, ValueError) as exc:
                    raise InvalidConfigurationError(
                        f"JWT secret is not valid base64: {exc}"
                    ) from exc

        token = encode_token(payload, key, algorithm=algorithm, headers=extra_headers)
        logger.debug("Signed JWT with %s", algorithm)

        if values.get("location") == "query":
            return SigningResult.query_parameter(values.get("name") or "token", token)

        prefix = values.get("header_prefix")
        if prefix is None:
            prefix = "Bearer"
        value = f"{prefix} {token}".strip()
        return SigningResult.header(values.get("name") or "Authorization", value)
