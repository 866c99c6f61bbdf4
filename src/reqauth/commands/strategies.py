"""Strategy discovery commands -- ``reqauth strategies`` and ``reqauth schema``.

``strategies`` lists every registered strategy. ``schema`` evaluates a
strategy's parameter schema against optional ``--value`` assignments, so
the effect of visibility rules can be checked before saving a profile::

    reqauth schema jwt --value location=query
"""

from __future__ import annotations

from typing import Optional

import typer

from reqauth.output import error, format_data, get_output, print_table


def strategies_command() -> None:
    """List the registered signing strategies.

    Example::

        reqauth strategies
        reqauth --json strategies
    """
    from reqauth.auth import create_default_manager

    manager = create_default_manager()
    rows = [
        [entry["name"], entry["label"], entry["short_label"]]
        for entry in manager.list_strategies()
    ]
    print_table(["Name", "Label", "Short"], rows, title="Signing strategies")


def schema_command(
    name: str = typer.Argument(help="Strategy name (see 'reqauth strategies')."),
    value: Optional[list[str]] = typer.Option(
        None, "--value", help="Current value as KEY=VALUE (repeatable)."
    ),
    show_hidden: bool = typer.Option(
        False, "--all", help="Include parameters hidden by the current values."
    ),
) -> None:
    """Show a strategy's parameters, evaluated against the given values.

    Raises:
        typer.Exit: With the error's exit code for an unknown strategy or a
            malformed ``--value``.

    Example::

        reqauth schema oauth1 --value signature_method=RSA-SHA256
    """
    from reqauth.auth import create_default_manager
    from reqauth.commands.common import parse_assignments
    from reqauth.exceptions import ReqauthError
    from reqauth.output import OutputFormat

    try:
        values = parse_assignments(value or [])
        rows = create_default_manager().evaluate(name, values)
    except ReqauthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    visible = [row for row in rows if show_hidden or not row.hidden]
    if get_output().format == OutputFormat.JSON:
        format_data(
            [
                {
                    "name": row.name,
                    "kind": row.kind.value,
                    "label": row.label,
                    "description": row.description,
                    "hidden": row.hidden,
                    "optional": row.optional,
                    "default": row.default,
                    "group": row.group,
                    "options": [opt.value for opt in row.options],
                }
                for row in visible
            ]
        )
        return

    table_rows = []
    for row in visible:
        name_cell = f"  {row.name}" if row.group else row.name
        table_rows.append(
            [
                name_cell,
                row.kind.value,
                row.label,
                "optional" if row.optional else "required",
                "" if row.default is None else str(row.default),
                ", ".join(opt.value for opt in row.options),
                "hidden" if row.hidden else "",
            ]
        )
    print_table(
        ["Name", "Kind", "Label", "Required", "Default", "Options", "State"],
        table_rows,
        title=f"Parameters for '{name}'",
    )
