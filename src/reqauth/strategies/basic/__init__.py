"""HTTP Basic signing strategy.

Implements the ``basic`` strategy, which Base64-encodes a
``username:password`` pair into an ``Authorization: Basic`` header per
:rfc:`7617`.

See Also:
    :class:`~reqauth.strategies.basic.strategy.BasicStrategy`
"""

from reqauth.strategies.basic.strategy import BasicStrategy

__all__ = ["BasicStrategy"]
