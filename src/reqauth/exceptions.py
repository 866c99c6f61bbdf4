"""Exception hierarchy for reqauth.

Each class fixes an ``exit_code`` from :mod:`reqauth.exit_codes`. CLI
commands print the message and exit with that code.

Strategies only ever raise :class:`SigningError` subclasses so that callers
can present the failure and offer a fresh signing attempt.

Subclass hierarchy::

    ReqauthError (exit 1)
    +-- InvalidUsageError                  (exit 2)
    +-- ConfigError                        (exit 1)
    +-- SigningError                       (exit 3)
        +-- MissingCredentialError         (exit 3)
        +-- InvalidConfigurationError      (exit 4)
        +-- UpstreamChallengeMissingError  (exit 5)
        +-- SigningComputationError        (exit 6)
        +-- UserCancelledError             (exit 130)
"""

from reqauth.exit_codes import (
    EXIT_CANCELLED,
    EXIT_CHALLENGE_MISSING,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_CONFIGURATION,
    EXIT_INVALID_USAGE,
    EXIT_MISSING_CREDENTIAL,
    EXIT_SIGNING_FAILED,
)


class ReqauthError(Exception):
    """Root of the reqauth error tree.

    Args:
        message: Shown to the user on stderr as is.
        exit_code: Replaces the class default for this instance only.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(ReqauthError):
    """Raised for invalid CLI arguments (e.g. a malformed ``-H`` value)."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(ReqauthError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class SigningError(ReqauthError):
    """Base class for every error a signing strategy can raise."""

    exit_code = EXIT_MISSING_CREDENTIAL


class MissingCredentialError(SigningError):
    """Raised when a required secret or credential profile is absent or unresolvable."""

    exit_code = EXIT_MISSING_CREDENTIAL


class InvalidConfigurationError(SigningError):
    """Raised for malformed strategy inputs (bad JSON, unknown algorithm, missing required value)."""

    exit_code = EXIT_INVALID_CONFIGURATION


class UpstreamChallengeMissingError(SigningError):
    """Raised when the server response lacks the challenge a handshake needs (NTLM)."""

    exit_code = EXIT_CHALLENGE_MISSING


class SigningComputationError(SigningError):
    """Raised when a cryptographic operation or protocol message parse fails."""

    exit_code = EXIT_SIGNING_FAILED


class UserCancelledError(SigningError):
    """Raised when an interactive flow is abandoned (window closed, timeout)."""

    exit_code = EXIT_CANCELLED
