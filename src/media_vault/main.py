"""Media Vault CLI — entry point.

Session-aware command line client for the Media Vault API.
"""

from __future__ import annotations

import logging

import typer

from media_vault.commands.auth_cmd import app as auth_app
from media_vault.commands.api_cmd import app as api_app

app = typer.Typer(
    name="media-vault",
    help="Command line client for the Media Vault API with automatic session refresh.",
    no_args_is_help=True,
)

# Register command groups
app.add_typer(auth_app, name="auth")
app.add_typer(api_app, name="api")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Media Vault CLI — sign in and call the API."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


if __name__ == "__main__":
    app()
