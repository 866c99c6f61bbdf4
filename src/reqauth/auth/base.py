"""Abstract base class for signing strategies.

This module defines the two foundational types of the signing subsystem:

- :class:`SigningContext` -- everything a strategy may look at besides its
  own parameter values: the request, the capability bundle, the token
  namespace, and injectable clock and randomness.
- :class:`SigningStrategy` -- the abstract base class every protocol
  (Basic, JWT, OAuth1, AWS SigV4, NTLM, OAuth2) extends.

To implement a new strategy, subclass :class:`SigningStrategy`, set the
:attr:`~SigningStrategy.name` and :attr:`~SigningStrategy.label`
properties, describe the inputs in :meth:`~SigningStrategy.parameters`
and implement :meth:`~SigningStrategy.apply`.

See Also:
    :mod:`reqauth.auth.manager` for registration and dispatch.
"""

from __future__ import annotations

import secrets
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from reqauth.auth.capabilities import Capabilities
from reqauth.auth.params import ParameterSchema, ResolvedValues
from reqauth.models import RequestDescriptor, SigningResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SigningContext:
    """Per-attempt input to :meth:`SigningStrategy.apply`.

    Attributes:
        request: The request being signed. Frozen; never modified.
        capabilities: Collaborators for network, browser, profiles and storage.
        context_id: Namespace for persisted tokens (one per saved profile).
        clock: Returns the current UTC time.
        random_bytes: Returns *n* random bytes (nonces, PKCE verifiers).
        redirect_timeout: Seconds to wait for an interactive redirect.
        background: Threads started through :meth:`run_in_background`.
    """

    request: RequestDescriptor
    capabilities: Capabilities = field(default_factory=Capabilities)
    context_id: str = "default"
    clock: Callable[[], datetime] = _utcnow
    random_bytes: Callable[[int], bytes] = secrets.token_bytes
    redirect_timeout: float = 300.0
    background: list[threading.Thread] = field(default_factory=list)

    def now(self) -> datetime:
        return self.clock()

    def run_in_background(self, target: Callable[..., Any], *args: Any) -> threading.Thread:
        """Start *target* on a daemon thread the caller can later join."""
        thread = threading.Thread(target=target, args=args, daemon=True)
        self.background.append(thread)
        thread.start()
        return thread

    def join_background(self, timeout: Optional[float] = None) -> bool:
        """Wait for work started by :meth:`run_in_background`.

        *timeout* bounds the whole wait, not each thread.

        Returns:
            ``True`` when every background thread has finished.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in self.background:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        return not any(thread.is_alive() for thread in self.background)


class SigningStrategy(ABC):
    """Abstract base class for request signing strategies.

    Every concrete strategy must provide:

    1. A :attr:`name` property returning its registry key (e.g. ``"jwt"``).
    2. A :meth:`parameters` schema describing its inputs.
    3. An :meth:`apply` implementation returning a
       :class:`~reqauth.models.SigningResult`.

    ``apply`` receives values already resolved against :meth:`parameters`
    (defaults applied, checkboxes coerced). It must not modify the request
    and raises only :class:`~reqauth.exceptions.SigningError` subclasses.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the registry key (``basic``, ``jwt``, ``oauth1``, ...)."""
        ...

    @property
    @abstractmethod
    def label(self) -> str:
        """Return the human-readable protocol name."""
        ...

    @property
    def short_label(self) -> str:
        """Return a compact label for narrow displays. Defaults to :attr:`label`."""
        return self.label

    @abstractmethod
    def parameters(self) -> ParameterSchema:
        """Return the schema describing this strategy's inputs."""
        ...

    @abstractmethod
    def apply(self, context: SigningContext, values: ResolvedValues) -> SigningResult:
        """Compute the header and query patch that authenticates ``context.request``.

        Args:
            context: The request plus capabilities.
            values: Parameter values resolved against :meth:`parameters`.

        Returns:
            The :class:`~reqauth.models.SigningResult` patch.

        Raises:
            MissingCredentialError: A required secret is absent.
            InvalidConfigurationError: Inputs are malformed.
            UpstreamChallengeMissingError: A handshake lacked its challenge.
            SigningComputationError: A cryptographic step failed.
            UserCancelledError: An interactive flow was abandoned.
        """
        ...
