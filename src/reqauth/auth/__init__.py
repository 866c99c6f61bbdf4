"""Strategy-based request signing for reqauth.

The main entry points are:

- :class:`SigningStrategy` -- abstract base class for new protocols.
- :class:`SigningContext` -- the request plus injected collaborators.
- :class:`SigningManager` -- registry mapping strategy names to instances;
  resolves values and dispatches :meth:`~SigningManager.apply`.
- :func:`create_default_manager` -- a manager with all built-in strategies.
- :func:`apply_signing_result` -- merge a result into a request copy.
- :class:`Capabilities` -- the collaborator bundle.

Typical usage::

    from reqauth.auth import create_default_manager, apply_signing_result

    manager = create_default_manager()
    result = manager.apply("basic", request, {"username": "u", "password": "p"})
    signed = apply_signing_result(request, result)
"""

from reqauth.auth.base import SigningContext, SigningStrategy
from reqauth.auth.capabilities import (
    Capabilities,
    HttpSender,
    HttpxSender,
    IniProfileCredentialResolver,
    KeyValueStore,
    LoopbackRedirectHost,
    ProfileCredentialResolver,
    RedirectHost,
    RedirectSession,
)
from reqauth.auth.manager import SigningManager, apply_signing_result, create_default_manager

__all__ = [
    "Capabilities",
    "HttpSender",
    "HttpxSender",
    "IniProfileCredentialResolver",
    "KeyValueStore",
    "LoopbackRedirectHost",
    "ProfileCredentialResolver",
    "RedirectHost",
    "RedirectSession",
    "SigningContext",
    "SigningManager",
    "SigningStrategy",
    "apply_signing_result",
    "create_default_manager",
]
