"""Profile commands -- save, list, show and delete signing profiles.

A profile stores a strategy name plus its parameter values. Secrets are
stored as credential sources (``env:VAR``, ``file:/path``, ``prompt``)
rather than as values, and are resolved each time the profile is used.

Typical workflow::

    reqauth profile save github --strategy basic --value username=me --secret password=env:GH_TOKEN
    reqauth profile list
    reqauth sign basic https://api.github.com/user -p github
"""

from __future__ import annotations

from typing import Optional

import typer

from reqauth.output import error, format_data, info, print_table, success, suggest


profile_app = typer.Typer(no_args_is_help=True)


@profile_app.command("save")
def profile_save(
    name: str = typer.Argument(help="Profile name."),
    strategy: str = typer.Option(..., "--strategy", "-s", help="Strategy name."),
    value: Optional[list[str]] = typer.Option(
        None, "--value", help="Parameter value as KEY=VALUE (repeatable)."
    ),
    secret: Optional[list[str]] = typer.Option(
        None, "--secret", help="Secret source as KEY=SOURCE (repeatable)."
    ),
    context_id: Optional[str] = typer.Option(
        None, "--context-id", help="Namespace for stored OAuth2 tokens."
    ),
) -> None:
    """Create or overwrite a signing profile.

    Values and secrets given here replace those of an existing profile with
    the same name wholesale; they are not merged.

    Raises:
        typer.Exit: With code 2 for an unknown strategy or a malformed
            assignment.

    Example::

        reqauth profile save aws --strategy awsv4 --value profile=prod --value region=eu-west-1
    """
    from reqauth.auth import create_default_manager
    from reqauth.commands.common import parse_assignments
    from reqauth.config import save_profile
    from reqauth.exceptions import ReqauthError
    from reqauth.models import SigningProfile

    try:
        create_default_manager().get_strategy(strategy)
        profile = SigningProfile(
            name=name,
            strategy=strategy,
            values=parse_assignments(value or []),
            secrets=parse_assignments(secret or [], option="--secret"),
            context_id=context_id,
        )
    except ReqauthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    save_profile(profile)
    success(f'Profile "{name}" saved ({strategy}).')
    suggest(f"Use it: reqauth sign {strategy} <url> -p {name}")


@profile_app.command("list")
def profile_list() -> None:
    """List saved profiles with their strategy.

    Profiles that fail to load are listed with an ``error`` strategy.

    Example::

        reqauth profile list
    """
    from reqauth.config import list_profiles, load_global_config, load_profile
    from reqauth.exceptions import ConfigError

    names = list_profiles()
    if not names:
        info("No profiles saved.")
        suggest("Create one: reqauth profile save <name> --strategy <strategy>")
        return

    try:
        default = load_global_config().default_profile
    except ConfigError:
        default = None

    rows: list[list[str]] = []
    for name in names:
        try:
            profile = load_profile(name)
            strategy = profile.strategy
            secrets = ", ".join(sorted(profile.secrets)) or "-"
        except ConfigError:
            strategy, secrets = "error", "-"
        rows.append([name, strategy, secrets, "*" if name == default else ""])
    print_table(["Name", "Strategy", "Secrets", "Default"], rows, title="Profiles")


@profile_app.command("show")
def profile_show(
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Show a profile's stored values and secret sources.

    Secret values are never resolved here; only their sources are shown.

    Example::

        reqauth profile show github
    """
    from reqauth.config import load_profile
    from reqauth.exceptions import ConfigError

    try:
        profile = load_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    format_data(profile.model_dump(mode="json", exclude_none=True))


@profile_app.command("delete")
def profile_delete(
    ctx: typer.Context,
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Delete a saved profile. Asks for confirmation unless ``--force`` is active.

    Example::

        reqauth --force profile delete github
    """
    from reqauth.config import delete_profile, profile_exists

    if not profile_exists(name):
        error(f"Profile '{name}' not found.")
        raise typer.Exit(code=1)

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm(f'Delete profile "{name}"?')
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    delete_profile(name)
    success(f'Profile "{name}" deleted.')
