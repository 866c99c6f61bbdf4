"""The ``reqauth`` command line.

:data:`app` is the root Typer application. Its callback turns the global
flags into an :class:`~reqauth.output.OutputManager`, routes library log
records to stderr, and leaves the remaining flags in ``ctx.obj``.
:func:`register_commands` attaches the sub-commands; :func:`main` is the
console-script entry point.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from reqauth import __version__
from reqauth.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="reqauth",
    help="Compute authentication headers and query parameters for HTTP requests.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

_registered = False


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"reqauth {__version__}")
        raise typer.Exit()


def _configured_log_level() -> str:
    """Log level from the global config, or WARNING when it cannot be read."""
    from reqauth.config import load_global_config
    from reqauth.exceptions import ConfigError
    from reqauth.output import warning

    try:
        return load_global_config().log_level
    except ConfigError as exc:
        warning(str(exc))
        return "WARNING"


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show version and exit."
    ),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Signing profile to use."),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Compute authentication headers and query parameters for HTTP requests.

    ``--json`` wins over ``--plain``; with neither, Rich output is used on
    a colour terminal and plain text everywhere else.
    """
    from reqauth.output import OutputFormat, OutputManager, configure_logging, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging(output, _configured_log_level())

    ctx.ensure_object(dict)
    ctx.obj.update(profile=profile, force=force, verbose=verbose)


def register_commands() -> typer.Typer:
    """Attach the built-in sub-commands to :data:`app` once and return it."""
    global _registered
    if _registered:
        return app

    from reqauth.commands.config import config_app
    from reqauth.commands.profile import profile_app
    from reqauth.commands.sign import sign_command
    from reqauth.commands.strategies import schema_command, strategies_command
    from reqauth.commands.token import token_app

    app.command("sign")(sign_command)
    app.command("strategies")(strategies_command)
    app.command("schema")(schema_command)
    app.add_typer(profile_app, name="profile", help="Signing profile management.")
    app.add_typer(token_app, name="token", help="Stored OAuth2 token management.")
    app.add_typer(config_app, name="config", help="Configuration management.")
    _registered = True
    return app


def _cancel(*_: Any) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_CANCELLED)


def _write_crash_log() -> Path:
    """Dump the traceback being handled into ``<data_dir>/logs``."""
    from reqauth.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text(traceback.format_exc(), encoding="utf-8")
    return log_path


def main() -> None:
    """Console-script entry point.

    A :class:`~reqauth.exceptions.ReqauthError` escaping a command exits
    with its ``exit_code``; anything else is written to a crash log and
    exits with the generic failure code.
    """
    from reqauth.exceptions import ReqauthError
    from reqauth.output import error

    signal.signal(signal.SIGINT, _cancel)
    try:
        register_commands()
        app()
    except KeyboardInterrupt:
        _cancel()
    except ReqauthError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception:
        error(f"Unexpected error. Debug log: {_write_crash_log()}")
        sys.exit(EXIT_GENERIC_FAILURE)
