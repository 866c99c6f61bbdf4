"""Token commands -- inspect and clear stored OAuth2 tokens.

Tokens obtained by the ``oauth2`` strategy are kept in the disk token
store under the cache directory, keyed by the profile's context ID and
client settings. These commands let a user check what is stored or force
a fresh authorization.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from reqauth.output import error, format_data, info, success


token_app = typer.Typer(no_args_is_help=True)


def _mask(token: str) -> str:
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"


def _open_store() -> Any:
    from reqauth.cache import TokenStore
    from reqauth.config import get_cache_dir, load_global_config

    return TokenStore(get_cache_dir(), load_global_config().cache)


def _profile_key(name: str) -> str:
    from reqauth.commands.common import context_id_for
    from reqauth.config import load_profile
    from reqauth.exceptions import InvalidUsageError
    from reqauth.strategies.oauth2 import token_store_key

    profile = load_profile(name)
    if profile.strategy != "oauth2":
        raise InvalidUsageError(
            f"Profile '{name}' uses strategy '{profile.strategy}'; only oauth2 profiles store tokens"
        )
    return token_store_key(context_id_for(profile), profile.values)


@token_app.command("show")
def token_show(
    profile: str = typer.Argument(help="Name of an oauth2 profile."),
    reveal: bool = typer.Option(False, "--reveal", help="Print the full token values."),
) -> None:
    """Show the token stored for an oauth2 profile.

    Token values are masked unless ``--reveal`` is given.

    Example::

        reqauth token show github-app
    """
    from reqauth.exceptions import ReqauthError
    from reqauth.models import StoredToken

    try:
        key = _profile_key(profile)
        store = _open_store()
        try:
            raw = store.get(key)
        finally:
            store.close()
    except ReqauthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if raw is None:
        info(f'No token stored for "{profile}".')
        raise typer.Exit(code=1)

    token = StoredToken.model_validate(raw)
    data: dict[str, Any] = {
        "access_token": token.access_token if reveal else _mask(token.access_token),
        "token_type": token.token_type,
        "expires_at": token.expires_at.isoformat() if token.expires_at else None,
        "expired": token.is_expired(),
        "has_refresh_token": token.refresh_token is not None,
    }
    if reveal and token.refresh_token:
        data["refresh_token"] = token.refresh_token
    format_data(data)


@token_app.command("clear")
def token_clear(
    ctx: typer.Context,
    profile: Optional[str] = typer.Argument(
        None, help="Profile whose token to clear; all tokens when omitted."
    ),
) -> None:
    """Delete stored OAuth2 tokens.

    Clearing every token asks for confirmation unless ``--force`` is
    active.

    Example::

        reqauth token clear github-app
        reqauth --force token clear
    """
    from reqauth.exceptions import ReqauthError

    if profile is not None:
        try:
            key = _profile_key(profile)
        except ReqauthError as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from None
        store = _open_store()
        try:
            store.delete(key)
        finally:
            store.close()
        success(f'Token for "{profile}" cleared.')
        return

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Clear all stored tokens?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    store = _open_store()
    try:
        count = store.clear()
    finally:
        store.close()
    success(f"Cleared {count} stored token(s).")
