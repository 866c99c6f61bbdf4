"""Sign command -- compute the authentication patch for a request.

``reqauth sign`` builds a request descriptor from the command line, signs
it with the named strategy and prints the resulting headers and query
parameters. The signed request itself is never sent. NTLM and OAuth2 do
perform their auxiliary round trips (challenge probe, browser redirect,
token exchange).

Typical usage::

    reqauth sign basic https://api.example.com --value username=me --secret password=env:PW
    reqauth sign awsv4 https://sts.amazonaws.com/?Action=GetCallerIdentity -p aws-prod
    reqauth --plain sign jwt https://api.example.com --value secret=s3cr3t
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from reqauth.output import debug, error, format_data, warning
from reqauth.models import RequestDescriptor, SigningResult


def _result_data(result: SigningResult) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if result.set_headers is not None:
        data["set_headers"] = [h.model_dump() for h in result.set_headers]
    if result.set_query_parameters is not None:
        data["set_query_parameters"] = [q.model_dump() for q in result.set_query_parameters]
    return data


def _result_lines(result: SigningResult) -> list[str]:
    lines = [f"{h.name}: {h.value}" for h in result.set_headers or []]
    lines.extend(f"?{q.name}={q.value}" for q in result.set_query_parameters or [])
    return lines


def _request_data(request: RequestDescriptor) -> dict[str, Any]:
    return {
        "method": request.method,
        "url": request.full_url(),
        "headers": [h.model_dump() for h in request.headers],
    }


def _request_lines(request: RequestDescriptor) -> list[str]:
    lines = [f"{request.method} {request.full_url()}"]
    lines.extend(f"{h.name}: {h.value}" for h in request.headers)
    return lines


def sign_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Strategy name (see 'reqauth strategies')."),
    url: str = typer.Argument(help="URL of the request to sign."),
    method: str = typer.Option("GET", "-X", "--method", help="HTTP method."),
    header: Optional[list[str]] = typer.Option(
        None, "-H", "--header", help="Request header as 'Name: value' (repeatable)."
    ),
    value: Optional[list[str]] = typer.Option(
        None, "--value", help="Strategy value as KEY=VALUE (repeatable)."
    ),
    secret: Optional[list[str]] = typer.Option(
        None,
        "--secret",
        help="Strategy secret as KEY=SOURCE; SOURCE is env:VAR, file:/path, prompt or literal:VALUE.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Saved signing profile to start from."
    ),
    merged: bool = typer.Option(
        False, "--merged", help="Print the whole signed request instead of the patch."
    ),
) -> None:
    """Sign a request and print the authentication headers/query parameters.

    Values are layered: the profile's saved values (with secrets resolved
    from their sources) first, then ``--value`` and ``--secret``.

    Raises:
        typer.Exit: With the failing error's exit code.
    """
    from reqauth.auth import SigningContext, apply_signing_result, create_default_manager
    from reqauth.commands.common import (
        build_capabilities,
        context_id_for,
        merged_values,
        parse_headers,
    )
    from reqauth.config import resolve_config
    from reqauth.exceptions import InvalidUsageError, ReqauthError

    cli_profile = profile or (ctx.obj.get("profile") if ctx.obj else None)
    try:
        config, active = resolve_config(cli_profile)
        if active is not None and active.strategy != name:
            if cli_profile is not None:
                raise InvalidUsageError(
                    f"Profile '{active.name}' uses strategy '{active.strategy}', not '{name}'"
                )
            debug(f"Ignoring default profile '{active.name}' ({active.strategy})")
            active = None

        request = RequestDescriptor(
            method=method.upper(), url=url, headers=parse_headers(header or [])
        )
        values = merged_values(active, value or [], secret or [])
        capabilities = build_capabilities(config)
        context = SigningContext(
            request=request,
            capabilities=capabilities,
            context_id=context_id_for(active),
            redirect_timeout=config.oauth2.redirect_timeout_seconds,
        )
        try:
            result = create_default_manager().apply(name, request, values, context=context)
        finally:
            if not context.join_background(config.http.timeout):
                warning("Token exchange still running; its token will not be stored")
            capabilities.store.close()
    except ReqauthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if merged:
        signed = apply_signing_result(request, result)
        format_data(_request_data(signed), plain_lines=_request_lines(signed))
    else:
        format_data(_result_data(result), plain_lines=_result_lines(result))
