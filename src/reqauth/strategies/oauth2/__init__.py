"""OAuth 2.0 authorization-code signing strategy with optional PKCE.

Implements the ``oauth2`` strategy: the authorization URL is opened
through the ``redirect`` capability, the code is captured from the
redirect, exchanged for tokens through the ``http`` capability, and the
token is persisted in the ``store`` capability for later attempts.

Exports:
    :class:`OAuth2AuthCodeStrategy` -- the strategy class.
    :func:`generate_pkce_pair` -- PKCE ``code_verifier`` / ``code_challenge``.
    :func:`token_store_key` -- store key of a saved token.
"""

from reqauth.strategies.oauth2.strategy import (
    OAuth2AuthCodeStrategy,
    generate_pkce_pair,
    token_store_key,
)

__all__ = ["OAuth2AuthCodeStrategy", "generate_pkce_pair", "token_store_key"]
