"""NTLM challenge-response signing strategy.

Implements the ``windows`` strategy: a Type-1 negotiate message is sent
through the ``http`` capability, the server's Type-2 challenge is read
from ``WWW-Authenticate``, and a Type-3 message is returned as the
``Authorization`` header.

See Also:
    :class:`~reqauth.strategies.ntlm.strategy.NtlmStrategy`
    :mod:`reqauth.canonical.ntlm` for the message codec.
"""

from reqauth.strategies.ntlm.strategy import NtlmStrategy, find_ntlm_challenge

__all__ = ["NtlmStrategy", "find_ntlm_challenge"]
