"""AWS Signature Version 4 canonical request, string-to-sign and signing key.

Every function here is pure. :func:`sign_request` chains them together
for a request whose signing headers have already been chosen; the header
selection policy (which request headers take part, which ``x-amz-*``
headers are added) lives in :mod:`reqauth.strategies.awsv4`.

Reference: https://docs.aws.amazon.com/IAM/latest/UserGuide/create-signed-request.html
"""

from __future__ import annotations

import hashlib
import hmac
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

from reqauth.canonical.encoding import form_decode, rfc3986_encode, trim_header_value

ALGORITHM = "AWS4-HMAC-SHA256"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
EMPTY_PAYLOAD_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

UNSIGNABLE_HEADERS = frozenset(
    {
        "authorization",
        "connection",
        "x-amzn-trace-id",
        "user-agent",
        "expect",
        "presigned-expires",
        "range",
    }
)

_MULTIPLE_SLASHES = re.compile(r"/{2,}")


def amz_datetime(moment: datetime) -> str:
    """Format *moment* as ``YYYYMMDDTHHMMSSZ`` in UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y%m%dT%H%M%SZ")


def sha256_hex(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def canonical_uri(path: str, service: str) -> str:
    """Canonicalise the request path.

    For every service but S3 the path is normalised (repeated slashes
    collapsed, ``.`` removed, ``..`` popping a segment) and each segment is
    encoded as-is, so an already-encoded path ends up encoded twice. For S3
    each segment is form-decoded and encoded once, and encoded slashes are
    restored.
    """
    if not path:
        return "/"
    if path == "/":
        return path

    is_s3 = service == "s3"
    if not is_s3:
        path = _MULTIPLE_SLASHES.sub("/", path)

    segments: list[str] = []
    for piece in path.split("/"):
        if not is_s3 and piece == "..":
            if segments:
                segments.pop()
        elif is_s3 or piece != ".":
            if is_s3:
                piece = form_decode(piece)
            segments.append(rfc3986_encode(piece))

    result = "/".join(segments)
    if not result.startswith("/"):
        result = "/" + result
    if is_s3:
        result = result.replace("%2F", "/")
    return result


def canonical_query(pairs: Iterable[tuple[str, str]], service: str) -> str:
    """Canonicalise decoded query *pairs*.

    Keys and values are RFC 3986 encoded and sorted by encoded key; repeated
    keys contribute every value in sorted order, except for S3 which keeps
    only the first value. Pairs with an empty key are dropped.
    """
    first_only = service == "s3"
    grouped: dict[str, list[str]] = {}
    for key, value in pairs:
        if not key:
            continue
        encoded_key = rfc3986_encode(key)
        values = grouped.setdefault(encoded_key, [])
        if first_only and values:
            continue
        values.append(rfc3986_encode(value))

    pieces: list[str] = []
    for key in sorted(grouped):
        for value in sorted(grouped[key]):
            pieces.append(f"{key}={value}")
    return "&".join(pieces)


def _signable(headers: Mapping[str, str]) -> list[tuple[str, str]]:
    items = [
        (name.lower(), value)
        for name, value in headers.items()
        if name.lower() not in UNSIGNABLE_HEADERS
    ]
    return sorted(items, key=lambda item: item[0])


def canonical_headers(headers: Mapping[str, str]) -> str:
    """Return the ``name:value`` lines (without the trailing blank line)."""
    return "\n".join(f"{name}:{trim_header_value(str(value))}" for name, value in _signable(headers))


def signed_headers(headers: Mapping[str, str]) -> str:
    return ";".join(name for name, _ in _signable(headers))


def canonical_request(
    method: str,
    path: str,
    query: Iterable[tuple[str, str]],
    headers: Mapping[str, str],
    payload_hash: str,
    service: str,
) -> str:
    """Assemble the six-line canonical request."""
    return "\n".join(
        [
            method.upper(),
            canonical_uri(path, service),
            canonical_query(query, service),
            canonical_headers(headers) + "\n",
            signed_headers(headers),
            payload_hash,
        ]
    )


def credential_scope(date_stamp: str, region: str, service: str) -> str:
    return f"{date_stamp}/{region}/{service}/aws4_request"


def string_to_sign(amz_date: str, scope: str, canonical: str) -> str:
    return "\n".join([ALGORITHM, amz_date, scope, sha256_hex(canonical)])


def _hmac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def signing_key(secret_access_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Derive ``kSigning`` from the secret through date, region and service."""
    k_date = _hmac(f"AWS4{secret_access_key}".encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


def signature(key: bytes, to_sign: str) -> str:
    return hmac.new(key, to_sign.encode("utf-8"), hashlib.sha256).hexdigest()


@dataclass
class SignedRequest:
    """Intermediate values of a SigV4 signature, kept for debugging and tests."""

    canonical_request: str
    string_to_sign: str
    signed_headers: str
    credential_scope: str
    signature: str
    authorization: str


def sign_request(
    method: str,
    path: str,
    query: Iterable[tuple[str, str]],
    headers: Mapping[str, str],
    payload_hash: str,
    access_key_id: str,
    secret_access_key: str,
    region: str,
    service: str,
    amz_date: str,
) -> SignedRequest:
    """Sign a request whose headers already include ``host`` and ``x-amz-date``.

    Returns:
        A :class:`SignedRequest` whose ``authorization`` is the complete
        ``Authorization`` header value.
    """
    date_stamp = amz_date[:8]
    scope = credential_scope(date_stamp, region, service)
    canonical = canonical_request(method, path, query, headers, payload_hash, service)
    to_sign = string_to_sign(amz_date, scope, canonical)
    sig = signature(signing_key(secret_access_key, date_stamp, region, service), to_sign)
    names = signed_headers(headers)
    return SignedRequest(
        canonical_request=canonical,
        string_to_sign=to_sign,
        signed_headers=names,
        credential_scope=scope,
        signature=sig,
        authorization=(
            f"{ALGORITHM} Credential={access_key_id}/{scope}, "
            f"SignedHeaders={names}, Signature={sig}"
        ),
    )
