"""NTLM message codec: Type-1 negotiate, Type-2 challenge, Type-3 authenticate.

Only NTLMv2 / LMv2 responses are produced. Layouts follow [MS-NLMP]
section 2.2.1; the Type-3 message uses the 64-byte header without the
optional version and MIC fields.

:func:`parse_challenge` returns a ``(message, error)`` pair instead of
raising so callers decide how to surface a malformed challenge.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from Crypto.Hash import MD4

SIGNATURE = b"NTLMSSP\x00"

NEGOTIATE_UNICODE = 0x00000001
NEGOTIATE_OEM = 0x00000002
REQUEST_TARGET = 0x00000004
NEGOTIATE_NTLM = 0x00000200
NEGOTIATE_DOMAIN_SUPPLIED = 0x00001000
NEGOTIATE_WORKSTATION_SUPPLIED = 0x00002000
NEGOTIATE_ALWAYS_SIGN = 0x00008000
NEGOTIATE_EXTENDED_SESSIONSECURITY = 0x00080000
NEGOTIATE_TARGET_INFO = 0x00800000
NEGOTIATE_128 = 0x20000000
NEGOTIATE_56 = 0x80000000

DEFAULT_NEGOTIATE_FLAGS = (
    NEGOTIATE_UNICODE
    | NEGOTIATE_OEM
    | REQUEST_TARGET
    | NEGOTIATE_NTLM
    | NEGOTIATE_ALWAYS_SIGN
    | NEGOTIATE_EXTENDED_SESSIONSECURITY
    | NEGOTIATE_128
    | NEGOTIATE_56
)

_EPOCH_DELTA_SECONDS = 11644473600  # 1601-01-01 -> 1970-01-01
_TYPE1_HEADER = 32
_TYPE3_HEADER = 64


@dataclass
class ChallengeMessage:
    """Decoded Type-2 message."""

    flags: int
    server_challenge: bytes
    target_name: bytes = b""
    target_info: bytes = b""

    @property
    def unicode(self) -> bool:
        return bool(self.flags & NEGOTIATE_UNICODE)


# --- Hashes ---


def nt_hash(password: str) -> bytes:
    """NTOWFv1: MD4 of the UTF-16LE password."""
    return MD4.new(password.encode("utf-16-le")).digest()


def ntlmv2_hash(username: str, password: str, domain: str) -> bytes:
    """NTOWFv2: HMAC-MD5 keyed by the NT hash over ``UPPER(user) + domain``."""
    identity = (username.upper() + domain).encode("utf-16-le")
    return hmac.new(nt_hash(password), identity, hashlib.md5).digest()


def filetime(moment: datetime) -> int:
    """Return *moment* as 100 ns intervals since 1601-01-01 UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    seconds = int(moment.timestamp())
    return (seconds + _EPOCH_DELTA_SECONDS) * 10_000_000 + moment.microsecond * 10


def lmv2_response(v2_hash: bytes, server_challenge: bytes, client_challenge: bytes) -> bytes:
    mac = hmac.new(v2_hash, server_challenge + client_challenge, hashlib.md5).digest()
    return mac + client_challenge


def ntlmv2_blob(timestamp: int, client_challenge: bytes, target_info: bytes) -> bytes:
    return (
        b"\x01\x01\x00\x00"
        + b"\x00" * 4
        + struct.pack("<Q", timestamp)
        + client_challenge
        + b"\x00" * 4
        + target_info
        + b"\x00" * 4
    )


def ntlmv2_response(
    v2_hash: bytes,
    server_challenge: bytes,
    client_challenge: bytes,
    timestamp: int,
    target_info: bytes,
) -> bytes:
    blob = ntlmv2_blob(timestamp, client_challenge, target_info)
    proof = hmac.new(v2_hash, server_challenge + blob, hashlib.md5).digest()
    return proof + blob


# --- Messages ---


def _security_buffer(length: int, offset: int) -> bytes:
    return struct.pack("<HHI", length, length, offset)


def _oem(value: str) -> bytes:
    return value.upper().encode("ascii", errors="replace")


def _encode(value: str, unicode: bool) -> bytes:
    if unicode:
        return value.encode("utf-16-le")
    return value.encode("ascii", errors="replace")


def negotiate_message(domain: str = "", workstation: str = "") -> bytes:
    """Build a Type-1 message announcing *domain* and *workstation* when given."""
    flags = DEFAULT_NEGOTIATE_FLAGS
    domain_bytes = _oem(domain)
    workstation_bytes = _oem(workstation)
    if domain_bytes:
        flags |= NEGOTIATE_DOMAIN_SUPPLIED
    if workstation_bytes:
        flags |= NEGOTIATE_WORKSTATION_SUPPLIED

    domain_offset = _TYPE1_HEADER
    workstation_offset = domain_offset + len(domain_bytes)
    return (
        SIGNATURE
        + struct.pack("<II", 1, flags)
        + _security_buffer(len(domain_bytes), domain_offset)
        + _security_buffer(len(workstation_bytes), workstation_offset)
        + domain_bytes
        + workstation_bytes
    )


def _read_buffer(data: bytes, at: int) -> Optional[bytes]:
    length, _max_length, offset = struct.unpack_from("<HHI", data, at)
    if offset + length > len(data):
        return None
    return data[offset:offset + length]


def parse_challenge(data: bytes) -> tuple[Optional[ChallengeMessage], Optional[str]]:
    """Decode a Type-2 message.

    Returns:
        ``(message, None)`` on success, ``(None, reason)`` otherwise.
    """
    if len(data) < 32:
        return None, f"Challenge message too short ({len(data)} bytes)"
    if data[:8] != SIGNATURE:
        return None, "Challenge message has no NTLMSSP signature"
    (message_type,) = struct.unpack_from("<I", data, 8)
    if message_type != 2:
        return None, f"Expected NTLM message type 2, got {message_type}"

    target_name = _read_buffer(data, 12)
    if target_name is None:
        return None, "Challenge target name points outside the message"
    (flags,) = struct.unpack_from("<I", data, 20)
    server_challenge = data[24:32]

    target_info = b""
    if len(data) >= 48:
        info = _read_buffer(data, 40)
        if info is None:
            return None, "Challenge target info points outside the message"
        target_info = info

    return (
        ChallengeMessage(
            flags=flags,
            server_challenge=server_challenge,
            target_name=target_name,
            target_info=target_info,
        ),
        None,
    )


def decode_challenge(encoded: str) -> tuple[Optional[ChallengeMessage], Optional[str]]:
    """Base64-decode then :func:`parse_challenge`."""
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        return None, f"Challenge is not valid base64: {exc}"
    return parse_challenge(raw)


def authenticate_message(
    challenge: ChallengeMessage,
    username: str,
    password: str,
    domain: str = "",
    workstation: str = "",
    client_challenge: bytes = b"\x00" * 8,
    timestamp: Optional[int] = None,
) -> bytes:
    """Build a Type-3 message answering *challenge* with NTLMv2 / LMv2 responses.

    Args:
        challenge: The decoded Type-2 message.
        username: Account name.
        password: Account password.
        domain: Account domain; also part of the NTLMv2 hash.
        workstation: Client machine name.
        client_challenge: Eight random bytes.
        timestamp: FILETIME value; the current time when ``None``.
    """
    if timestamp is None:
        timestamp = filetime(datetime.now(timezone.utc))

    v2_hash = ntlmv2_hash(username, password, domain)
    lm = lmv2_response(v2_hash, challenge.server_challenge, client_challenge)
    nt = ntlmv2_response(
        v2_hash, challenge.server_challenge, client_challenge, timestamp, challenge.target_info
    )

    domain_bytes = _encode(domain, challenge.unicode)
    user_bytes = _encode(username, challenge.unicode)
    workstation_bytes = _encode(workstation, challenge.unicode)

    offset = _TYPE3_HEADER
    domain_offset = offset
    user_offset = domain_offset + len(domain_bytes)
    workstation_offset = user_offset + len(user_bytes)
    lm_offset = workstation_offset + len(workstation_bytes)
    nt_offset = lm_offset + len(lm)
    session_offset = nt_offset + len(nt)

    return (
        SIGNATURE
        + struct.pack("<I", 3)
        + _security_buffer(len(lm), lm_offset)
        + _security_buffer(len(nt), nt_offset)
        + _security_buffer(len(domain_bytes), domain_offset)
        + _security_buffer(len(user_bytes), user_offset)
        + _security_buffer(len(workstation_bytes), workstation_offset)
        + _security_buffer(0, session_offset)
        + struct.pack("<I", challenge.flags)
        + domain_bytes
        + user_bytes
        + workstation_bytes
        + lm
        + nt
    )
