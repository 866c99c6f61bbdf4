"""Canonicalization helpers behind the signature-based strategies.

- :mod:`reqauth.canonical.encoding` -- RFC 3986 encoding, query parsing,
  header selection.
- :mod:`reqauth.canonical.oauth1` -- OAuth 1.0a base string, signatures and
  ``Authorization`` header.
- :mod:`reqauth.canonical.sigv4` -- AWS SigV4 canonical request,
  string-to-sign and signing key.
- :mod:`reqauth.canonical.ntlm` -- NTLM Type-1/2/3 message codec.

Everything here is a pure function of its arguments.
"""

from reqauth.canonical.encoding import rfc3986_encode

__all__ = ["rfc3986_encode"]
