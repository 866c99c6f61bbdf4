"""Signing manager -- registry and dispatcher for signing strategies.

The :class:`SigningManager` is the central coordinator of the signing
subsystem. It maps strategy names (``"basic"``, ``"jwt"``, ``"oauth1"``,
``"awsv4"``, ``"windows"``, ``"oauth2"``) to concrete
:class:`~reqauth.auth.base.SigningStrategy` instances and exposes a single
:meth:`~SigningManager.apply` method that resolves raw values against the
strategy's schema before delegating.

:func:`apply_signing_result` merges the returned patch into a new
:class:`~reqauth.models.RequestDescriptor`.

For most use cases, call :func:`create_default_manager` to get a manager
pre-loaded with every built-in strategy.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from reqauth.auth.base import SigningContext, SigningStrategy
from reqauth.auth.capabilities import Capabilities
from reqauth.auth.params import EvaluatedParameter, ResolvedValues
from reqauth.exceptions import InvalidUsageError
from reqauth.models import NameValue, RequestDescriptor, SigningResult

logger = logging.getLogger(__name__)


class SigningManager:
    """Registry and dispatcher for signing strategies.

    Example::

        from reqauth.auth import SigningManager
        from reqauth.strategies.basic import BasicStrategy

        manager = SigningManager()
        manager.register(BasicStrategy())
        result = manager.apply("basic", request, {"username": "user", "password": "pass"})
    """

    def __init__(self) -> None:
        self._strategies: dict[str, SigningStrategy] = {}

    def register(self, strategy: SigningStrategy) -> None:
        """Register a strategy under its :attr:`~SigningStrategy.name`.

        A strategy already registered under the same name is replaced.
        """
        self._strategies[strategy.name] = strategy

    def get_strategy(self, name: str) -> SigningStrategy:
        """Retrieve a registered strategy by name.

        Raises:
            InvalidUsageError: If no strategy is registered for *name*.
        """
        strategy = self._strategies.get(name)
        if strategy is None:
            available = ", ".join(sorted(self._strategies)) or "(none)"
            raise InvalidUsageError(
                f"No signing strategy registered for '{name}'. "
                f"Available strategies: {available}"
            )
        return strategy

    def list_names(self) -> list[str]:
        return sorted(self._strategies.keys())

    def list_strategies(self) -> list[dict[str, str]]:
        """List registered strategies with their labels, sorted by name."""
        return [
            {
                "name": strategy.name,
                "label": strategy.label,
                "short_label": strategy.short_label,
            }
            for _, strategy in sorted(self._strategies.items())
        ]

    def resolve(self, name: str, values: Mapping[str, Any]) -> ResolvedValues:
        """Resolve raw *values* against the schema of strategy *name*."""
        return self.get_strategy(name).parameters().resolve(values)

    def evaluate(self, name: str, values: Mapping[str, Any]) -> list[EvaluatedParameter]:
        """Evaluate the schema of strategy *name* against *values*."""
        return self.get_strategy(name).parameters().evaluate(values)

    def apply(
        self,
        name: str,
        request: RequestDescriptor,
        values: Mapping[str, Any],
        capabilities: Optional[Capabilities] = None,
        context_id: str = "default",
        context: Optional[SigningContext] = None,
    ) -> SigningResult:
        """Resolve *values* and sign *request* with strategy *name*.

        Args:
            name: Registry key of the strategy.
            request: The request to sign; never modified.
            values: Raw parameter values.
            capabilities: Collaborators for strategies that need I/O.
            context_id: Namespace for persisted tokens.
            context: A fully built context (clock, randomness, timeouts);
                when given, *request*, *capabilities* and *context_id* are
                taken from it.

        Returns:
            The strategy's :class:`~reqauth.models.SigningResult`.

        Raises:
            InvalidUsageError: If *name* is unknown.
            SigningError: Whatever the strategy raises.
        """
        strategy = self.get_strategy(name)
        resolved = strategy.parameters().resolve(values)
        if context is None:
            context = SigningContext(
                request=request,
                capabilities=capabilities or Capabilities(),
                context_id=context_id,
            )
        logger.debug("Signing %s %s with '%s'", context.request.method, context.request.url, name)
        return strategy.apply(context, resolved)


def _upsert(items: list[NameValue], patch: list[NameValue], case_insensitive: bool) -> list[NameValue]:
    def norm(name: str) -> str:
        return name.lower() if case_insensitive else name

    merged = list(items)
    for entry in patch:
        key = norm(entry.name)
        positions = [i for i, existing in enumerate(merged) if norm(existing.name) == key]
        if positions:
            merged[positions[0]] = entry
            for i in reversed(positions[1:]):
                del merged[i]
        else:
            merged.append(entry)
    return merged


def apply_signing_result(request: RequestDescriptor, result: SigningResult) -> RequestDescriptor:
    """Return a copy of *request* with *result* merged in.

    Headers are upserted case-insensitively and query parameters by exact
    name; every existing instance of a patched name is replaced by the
    patch value, and the last patch entry for a name wins. ``None`` fields
    leave the request untouched.
    """
    update: dict[str, Any] = {}
    if result.set_headers is not None:
        update["headers"] = _upsert(request.headers, result.set_headers, case_insensitive=True)
    if result.set_query_parameters is not None:
        update["query"] = _upsert(
            request.query, result.set_query_parameters, case_insensitive=False
        )
    if not update:
        return request
    return request.model_copy(update=update)


def create_default_manager() -> SigningManager:
    """Create a :class:`SigningManager` pre-loaded with all built-in strategies.

    The following strategies are registered:

    - ``basic`` -- HTTP Basic.
    - ``jwt`` -- bearer JSON Web Token.
    - ``oauth1`` -- OAuth 1.0a signatures.
    - ``awsv4`` -- AWS Signature Version 4.
    - ``windows`` -- NTLM challenge-response.
    - ``oauth2`` -- OAuth 2.0 authorization code.
    """
    from reqauth.strategies.awsv4 import AwsSigV4Strategy
    from reqauth.strategies.basic import BasicStrategy
    from reqauth.strategies.jwt import JwtStrategy
    from reqauth.strategies.ntlm import NtlmStrategy
    from reqauth.strategies.oauth1 import OAuth1Strategy
    from reqauth.strategies.oauth2 import OAuth2AuthCodeStrategy

    manager = SigningManager()
    manager.register(BasicStrategy())
    manager.register(JwtStrategy())
    manager.register(OAuth1Strategy())
    manager.register(AwsSigV4Strategy())
    manager.register(NtlmStrategy())
    manager.register(OAuth2AuthCodeStrategy())
    return manager
