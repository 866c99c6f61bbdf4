"""AWS Signature Version 4 signing strategy.

Implements the ``awsv4`` strategy, which signs requests for AWS services
with ``AWS4-HMAC-SHA256`` using explicit keys or a named shared-config
profile.

See Also:
    :class:`~reqauth.strategies.awsv4.strategy.AwsSigV4Strategy`
    :mod:`reqauth.canonical.sigv4` for the canonical request and signature.
"""

from reqauth.strategies.awsv4.strategy import AwsSigV4Strategy

__all__ = ["AwsSigV4Strategy"]
