"""reqauth -- pluggable HTTP request authentication signing.

This package turns an outgoing HTTP request descriptor into a patch of
headers and query parameters that proves identity to the target server.
Each wire protocol is a *strategy* registered by name:

* ``basic`` -- HTTP Basic (:rfc:`7617`).
* ``jwt`` -- signed JSON Web Token sent as a bearer header or query param.
* ``oauth1`` -- OAuth 1.0a request signing (:rfc:`5849`).
* ``awsv4`` -- AWS Signature Version 4.
* ``windows`` -- NTLM challenge-response.
* ``oauth2`` -- OAuth 2.0 authorization-code grant.

Typical usage::

    from reqauth.auth import create_default_manager
    from reqauth.models import RequestDescriptor

    manager = create_default_manager()
    request = RequestDescriptor(method="GET", url="https://api.example.com/me")
    result = manager.apply("basic", request, {"username": "u", "password": "p"})

Modules:
    models: Pydantic models shared across the package.
    auth: Strategy contract, parameter model, registry and capabilities.
    canonical: Protocol canonicalisation helpers (OAuth1, SigV4, NTLM).
    strategies: The built-in signing strategies.
    config: XDG-aware configuration and saved signing profiles.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"
