"""Process exit codes of the ``reqauth`` command.

Every :class:`~reqauth.exceptions.ReqauthError` subclass carries one of
these, so a script can tell a missing credential from a malformed
strategy input by status alone.

Example::

    $ reqauth sign windows https://intranet.example.com/
    $ echo $?
    5   # EXIT_CHALLENGE_MISSING -- server sent no NTLM challenge
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_MISSING_CREDENTIAL = 3
"""A required secret or credential profile was absent or unresolvable."""

EXIT_INVALID_CONFIGURATION = 4
"""Strategy inputs were malformed (bad JSON, unknown option, missing field)."""

EXIT_CHALLENGE_MISSING = 5
"""The upstream server did not return the expected authentication challenge."""

EXIT_SIGNING_FAILED = 6
"""A cryptographic or protocol computation failed."""

EXIT_CANCELLED = 130
"""The user abandoned an interactive flow (same code as Ctrl-C)."""
