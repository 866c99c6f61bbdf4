"""OAuth 1.0a signature base string, signing and header formatting (:rfc:`5849`).

The pieces are kept separate so each step can be checked on its own:

1. :func:`base_string_uri` -- scheme and host lowercased, default port
   dropped, query and fragment removed.
2. :func:`normalize_parameters` -- encode every pair, sort, join with ``&``.
3. :func:`signature_base_string` -- ``METHOD&enc(uri)&enc(params)``.
4. :func:`sign` -- HMAC, RSA (PKCS#1 v1.5) or PLAINTEXT.
5. :func:`authorization_header` -- the ``OAuth ...`` header value.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Iterable, Mapping
from typing import Optional
from urllib.parse import urlsplit

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from reqauth.canonical.encoding import rfc3986_encode
from reqauth.exceptions import InvalidConfigurationError, SigningComputationError

HMAC_SHA1 = "HMAC-SHA1"
HMAC_SHA256 = "HMAC-SHA256"
HMAC_SHA512 = "HMAC-SHA512"
RSA_SHA1 = "RSA-SHA1"
RSA_SHA256 = "RSA-SHA256"
RSA_SHA512 = "RSA-SHA512"
PLAINTEXT = "PLAINTEXT"

HMAC_METHODS = {HMAC_SHA1: hashlib.sha1, HMAC_SHA256: hashlib.sha256, HMAC_SHA512: hashlib.sha512}
RSA_METHODS = {RSA_SHA1: hashes.SHA1, RSA_SHA256: hashes.SHA256, RSA_SHA512: hashes.SHA512}
SIGNATURE_METHODS = [*HMAC_METHODS, *RSA_METHODS, PLAINTEXT]

_DEFAULT_PORTS = {"http": 80, "https": 443}


def base_string_uri(url: str) -> str:
    """Return the base string URI of *url* (:rfc:`5849#section-3.4.1.2`)."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if parts.port is not None and parts.port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{parts.port}"
    path = parts.path or "/"
    return f"{scheme}://{host}{path}"


def normalize_parameters(pairs: Iterable[tuple[str, str]]) -> str:
    """Encode, sort and join request parameters (:rfc:`5849#section-3.4.1.3.2`).

    Pairs are sorted by encoded name, then by encoded value, so repeated
    keys keep a deterministic order.
    """
    encoded = sorted((rfc3986_encode(k), rfc3986_encode(v)) for k, v in pairs)
    return "&".join(f"{k}={v}" for k, v in encoded)


def signature_base_string(method: str, url: str, pairs: Iterable[tuple[str, str]]) -> str:
    """Build ``UPPER(method)&enc(base_uri)&enc(normalized_params)``.

    Args:
        method: HTTP method of the request.
        url: The request URL; its query string is ignored here.
        pairs: Every signable parameter, protocol parameters included and
            ``oauth_signature`` excluded.
    """
    return "&".join(
        [
            rfc3986_encode(method.upper()),
            rfc3986_encode(base_string_uri(url)),
            rfc3986_encode(normalize_parameters(pairs)),
        ]
    )


def signing_key(consumer_secret: str, token_secret: str = "") -> str:
    return f"{rfc3986_encode(consumer_secret)}&{rfc3986_encode(token_secret)}"


def _sign_rsa(base_string: str, private_key_pem: str, algorithm: type[hashes.HashAlgorithm]) -> str:
    if not private_key_pem.strip():
        raise SigningComputationError("RSA signature methods require a private key")
    try:
        key = serialization.load_pem_private_key(
            private_key_pem.strip().encode("utf-8"), password=None
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningComputationError(f"Invalid RSA private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningComputationError("Private key is not an RSA key")
    signature = key.sign(base_string.encode("utf-8"), padding.PKCS1v15(), algorithm())
    return base64.b64encode(signature).decode("ascii")


def sign(
    method: str,
    base_string: str,
    consumer_secret: str = "",
    token_secret: str = "",
    private_key_pem: Optional[str] = None,
) -> str:
    """Compute ``oauth_signature`` for *base_string*.

    Raises:
        InvalidConfigurationError: If *method* is not a known signature method.
        SigningComputationError: If an RSA key is missing or malformed.
    """
    if method in HMAC_METHODS:
        key = signing_key(consumer_secret, token_secret).encode("utf-8")
        digest = hmac.new(key, base_string.encode("utf-8"), HMAC_METHODS[method]).digest()
        return base64.b64encode(digest).decode("ascii")
    if method in RSA_METHODS:
        return _sign_rsa(base_string, private_key_pem or "", RSA_METHODS[method])
    if method == PLAINTEXT:
        return signing_key(consumer_secret, token_secret)
    raise InvalidConfigurationError(
        f"Unsupported OAuth 1.0 signature method '{method}'. "
        f"Expected one of: {', '.join(SIGNATURE_METHODS)}"
    )


def authorization_header(oauth_params: Mapping[str, str], realm: Optional[str] = None) -> str:
    """Format the ``Authorization`` value: ``OAuth [realm="..", ]k="enc(v)", ...``.

    Only ``oauth_*`` entries are emitted, sorted by name.
    """
    pieces = []
    if realm:
        pieces.append(f'realm="{realm}"')
    pieces.extend(
        f'{rfc3986_encode(k)}="{rfc3986_encode(v)}"'
        for k, v in sorted(oauth_params.items())
        if k.startswith("oauth_")
    )
    return "OAuth " + ", ".join(pieces)
