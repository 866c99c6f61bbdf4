"""Bearer JSON Web Token signing strategy.

Implements the ``jwt`` strategy: a token is minted from a JSON payload
with python-jose and sent as a bearer header or a query parameter.

See Also:
    :class:`~reqauth.strategies.jwt.strategy.JwtStrategy`
"""

from reqauth.strategies.jwt.strategy import JwtStrategy, encode_token

__all__ = ["JwtStrategy", "encode_token"]
