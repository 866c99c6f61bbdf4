"""Built-in CLI sub-commands for reqauth.

* :mod:`~reqauth.commands.strategies` -- list strategies and show schemas.
* :mod:`~reqauth.commands.sign` -- sign a request and print the result.
* :mod:`~reqauth.commands.profile` -- save and manage signing profiles.
* :mod:`~reqauth.commands.token` -- inspect and clear stored OAuth2 tokens.
* :mod:`~reqauth.commands.config` -- view and modify global settings.

Multi-command groups export a :class:`typer.Typer` sub-application;
single commands export a plain callback registered on the root app.
"""
