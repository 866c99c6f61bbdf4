"""Built-in signing strategies.

Each sub-package exports one :class:`~reqauth.auth.base.SigningStrategy`:

- ``basic`` -- :class:`~reqauth.strategies.basic.BasicStrategy`
- ``jwt`` -- :class:`~reqauth.strategies.jwt.JwtStrategy`
- ``oauth1`` -- :class:`~reqauth.strategies.oauth1.OAuth1Strategy`
- ``awsv4`` -- :class:`~reqauth.strategies.awsv4.AwsSigV4Strategy`
- ``windows`` -- :class:`~reqauth.strategies.ntlm.NtlmStrategy`
- ``oauth2`` -- :class:`~reqauth.strategies.oauth2.OAuth2AuthCodeStrategy`

:func:`~reqauth.auth.manager.create_default_manager` registers all of them.
"""
