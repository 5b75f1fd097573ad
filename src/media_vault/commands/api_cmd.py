"""CLI commands for raw authenticated API calls."""

from __future__ import annotations

import asyncio
import json
from typing import Annotated, Any

import typer

from media_vault.client import MediaVaultClient
from media_vault.config import get_config
from media_vault.exceptions import MediaVaultError
from media_vault.utils.errors import handle_error
from media_vault.utils.output import OutputFormat, print_response

app = typer.Typer(name="api", help="Send authenticated requests to any API path.")

ParamOption = Annotated[
    list[str] | None,
    typer.Option("--param", "-q", help="Query parameter as key=value (repeatable)"),
]
BodyOption = Annotated[str | None, typer.Option("--body", "-b", help="JSON request body")]
OutputOption = Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show request details")]


def _parse_params(raw: list[str] | None) -> dict[str, str] | None:
    """Turn ['a=1', 'b=2'] into {'a': '1', 'b': '2'}."""
    if not raw:
        return None
    params = {}
    for item in raw:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{item}'", param_hint="--param")
        params[key] = value
    return params


def _parse_body(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"Body is not valid JSON: {e}", param_hint="--body")


def _call(
    method: str,
    path: str,
    params: list[str] | None,
    body: str | None,
    output: OutputFormat,
    verbose: bool,
) -> None:
    query = _parse_params(params)
    payload = _parse_body(body)
    client = MediaVaultClient.from_config(get_config(), verbose=verbose)

    async def _send() -> Any:
        try:
            response = await client.request(method, path, json=payload, params=query)
            if not response.content:
                return {"status_code": response.status_code}
            try:
                return response.json()
            except ValueError:
                return {"status_code": response.status_code, "body": response.text}
        finally:
            await client.close()

    try:
        print_response(asyncio.run(_send()), output)
    except MediaVaultError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command()
def get(
    path: Annotated[str, typer.Argument(help="API path, e.g. /files")],
    param: ParamOption = None,
    output: OutputOption = OutputFormat.JSON,
    verbose: VerboseOption = False,
) -> None:
    """GET an API path."""
    _call("GET", path, param, None, output, verbose)


@app.command()
def post(
    path: Annotated[str, typer.Argument(help="API path")],
    body: BodyOption = None,
    param: ParamOption = None,
    output: OutputOption = OutputFormat.JSON,
    verbose: VerboseOption = False,
) -> None:
    """POST a JSON body to an API path."""
    _call("POST", path, param, body, output, verbose)


@app.command()
def put(
    path: Annotated[str, typer.Argument(help="API path")],
    body: BodyOption = None,
    param: ParamOption = None,
    output: OutputOption = OutputFormat.JSON,
    verbose: VerboseOption = False,
) -> None:
    """PUT a JSON body to an API path."""
    _call("PUT", path, param, body, output, verbose)


@app.command()
def patch(
    path: Annotated[str, typer.Argument(help="API path")],
    body: BodyOption = None,
    param: ParamOption = None,
    output: OutputOption = OutputFormat.JSON,
    verbose: VerboseOption = False,
) -> None:
    """PATCH an API path with a JSON body."""
    _call("PATCH", path, param, body, output, verbose)


@app.command()
def delete(
    path: Annotated[str, typer.Argument(help="API path")],
    param: ParamOption = None,
    output: OutputOption = OutputFormat.JSON,
    verbose: VerboseOption = False,
) -> None:
    """DELETE an API path."""
    _call("DELETE", path, param, None, output, verbose)
