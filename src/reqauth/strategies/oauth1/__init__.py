"""OAuth 1.0a signing strategy.

Implements the ``oauth1`` strategy: HMAC, RSA or PLAINTEXT signatures
over the :rfc:`5849` signature base string, sent as an
``Authorization: OAuth ...`` header.

See Also:
    :class:`~reqauth.strategies.oauth1.strategy.OAuth1Strategy`
    :mod:`reqauth.canonical.oauth1` for the base string and signatures.
"""

from reqauth.strategies.oauth1.strategy import OAuth1Strategy

__all__ = ["OAuth1Strategy"]
