"""Config commands -- view and modify the global configuration.

``reqauth config`` reads and updates :class:`~reqauth.models.GlobalConfig`:
the default profile, the library log level, auxiliary HTTP settings, the
OAuth2 redirect surface and the token/credential caches.
"""

from __future__ import annotations

from typing import Any

import typer

from reqauth.output import error, format_data, info, success


config_app = typer.Typer(no_args_is_help=True)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _coerce(key: str, current: Any, value: str) -> Any:
    """Coerce *value* to the type of the field's *current* value.

    Raises:
        InvalidUsageError: If *value* does not fit the field's type.
    """
    from reqauth.exceptions import InvalidUsageError

    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            raise InvalidUsageError(f"Expected integer for {key}, got: {value}") from None
    if key == "log_level":
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise InvalidUsageError(
                f"Invalid log level {value!r}; expected one of {', '.join(_LOG_LEVELS)}"
            )
        return level
    if current is None and value.lower() in ("", "none", "null"):
        return None
    return value


def _locate(data: dict[str, Any], key: str) -> tuple[dict[str, Any], str]:
    """Return the dict holding the dotted *key* and the leaf name within it.

    Raises:
        InvalidUsageError: If the path does not end at a scalar setting.
    """
    from reqauth.exceptions import InvalidUsageError

    *parents, leaf = key.split(".")
    section: Any = data
    for part in parents:
        section = section.get(part) if isinstance(section, dict) else None
    if not isinstance(section, dict) or leaf not in section or isinstance(section[leaf], dict):
        raise InvalidUsageError(f"Unknown config key: {key}")
    return section, leaf


@config_app.command("show")
def config_show() -> None:
    """Print the configuration, with its directories on stderr.

    Example::

        reqauth --json config show
    """
    from reqauth.config import get_cache_dir, get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    info(f"Cache directory: {get_cache_dir()}")
    format_data(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting in dot notation, e.g. 'http.timeout'."),
    value: str = typer.Argument(help="New value."),
) -> None:
    """Change one setting.

    *value* is converted to the type of the current setting and the whole
    configuration is validated before anything is written.

    Raises:
        typer.Exit: With code 2 for an unknown key or a value that does
            not fit.

    Example::

        reqauth config set default_profile github
        reqauth config set log_level debug
        reqauth config set oauth2.callback_port 8765
    """
    from pydantic import ValidationError

    from reqauth.config import load_global_config, save_global_config
    from reqauth.exceptions import InvalidUsageError
    from reqauth.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")
    try:
        section, leaf = _locate(data, key)
        section[leaf] = _coerce(leaf, section[leaf], value)
        updated = GlobalConfig.model_validate(data)
    except InvalidUsageError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(updated)
    success(f"Set {key} = {section[leaf]}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset the configuration to defaults.

    Asks for confirmation unless ``--force`` is active. Saved profiles and
    stored tokens are left alone.

    Example::

        reqauth --force config reset
    """
    from reqauth.config import save_global_config
    from reqauth.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
