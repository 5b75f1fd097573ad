"""CLI commands for session management."""

from __future__ import annotations

import asyncio
from typing import Annotated, Any, Awaitable, Callable

import typer
from rich.console import Console

from media_vault.auth import AuthManager
from media_vault.client import MediaVaultClient
from media_vault.config import get_config
from media_vault.exceptions import MediaVaultError
from media_vault.storage import JsonFileStore
from media_vault.token_store import TokenStore
from media_vault.utils.errors import handle_error
from media_vault.utils.output import OutputFormat, print_output, session_summary

console = Console(stderr=True)
app = typer.Typer(name="auth", help="Manage the API session.")


def _session_result(client: MediaVaultClient, status: str) -> dict[str, object]:
    summary = session_summary(client.tokens.get_status())
    return {"status": status, "expires_at": summary["expires_at"], "expires_in": summary["expires_in"]}


@app.command()
def login(
    email: Annotated[str, typer.Option("--email", "-e", prompt=True, help="Account email")],
    password: Annotated[str, typer.Option("--password", "-p", prompt=True, hide_input=True, help="Account password")],
    remember_me: Annotated[bool, typer.Option("--remember-me", help="Ask for a long-lived session")] = False,
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show request details")] = False,
) -> None:
    """Sign in and store the session tokens."""
    client = MediaVaultClient.from_config(get_config(), verbose=verbose)

    async def _login() -> dict[str, object]:
        try:
            data = await client.auth.login(email, password, remember_me)
            result = _session_result(client, "authenticated")
            result["user"] = (data.user or {}).get("email", email)
            return result
        finally:
            await client.close()

    try:
        console.print(f"Signing in as [bold]{email}[/bold]...", style="yellow")
        print_output(asyncio.run(_login()), output, title="Authentication")
    except MediaVaultError as e:
        handle_error(e)
        raise typer.Exit(1)


def _account_command(
    call: Callable[[AuthManager], Awaitable[dict[str, Any]]],
    output: OutputFormat,
    title: str,
) -> None:
    """Run one unauthenticated account call and print the server's reply."""
    client = MediaVaultClient.from_config(get_config())

    async def _run() -> dict[str, Any]:
        try:
            return await call(client.auth)
        finally:
            await client.close()

    try:
        data = asyncio.run(_run())
    except MediaVaultError as e:
        handle_error(e)
        raise typer.Exit(1)
    result = {"success": data.get("success", True), "message": data.get("message", "")}
    user = data.get("user")
    if isinstance(user, dict) and user.get("email"):
        result["user"] = user["email"]
    print_output(result, output, title=title)


@app.command()
def register(
    email: Annotated[str, typer.Option("--email", "-e", prompt=True, help="Account email")],
    name: Annotated[str, typer.Option("--name", "-n", prompt=True, help="Display name")],
    password: Annotated[str, typer.Option(
        "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True, help="Account password",
    )],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Create an account (does not sign in)."""
    _account_command(lambda auth: auth.register(email, password, name), output, "Registration")


@app.command("forgot-password")
def forgot_password(
    email: Annotated[str, typer.Option("--email", "-e", prompt=True, help="Account email")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Request a password reset email."""
    _account_command(lambda auth: auth.forgot_password(email), output, "Password Reset")


@app.command("reset-password")
def reset_password(
    token: Annotated[str, typer.Option("--token", "-t", prompt=True, help="Token from the reset email")],
    password: Annotated[str, typer.Option(
        "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True, help="New password",
    )],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Set a new password with a reset token."""
    _account_command(lambda auth: auth.reset_password(token, password), output, "Password Reset")


@app.command()
def logout(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show request details")] = False,
) -> None:
    """Clear the stored session and revoke it on the server."""
    client = MediaVaultClient.from_config(get_config(), verbose=verbose)

    async def _logout() -> None:
        try:
            await client.auth.logout()
        finally:
            await client.close()

    asyncio.run(_logout())
    console.print("[green]Logged out.[/green]")


@app.command()
def status(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show the stored session status."""
    config = get_config()
    tokens = TokenStore.from_settings(JsonFileStore(config.token_path), config.settings)

    print_output(session_summary(tokens.get_status()), output, title="Session Status")


@app.command()
def refresh(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show request details")] = False,
) -> None:
    """Force a token refresh using the stored refresh token."""
    client = MediaVaultClient.from_config(get_config(), verbose=verbose)

    async def _refresh() -> dict[str, object]:
        try:
            await client.session.refresh_now()
            return _session_result(client, "refreshed")
        finally:
            await client.close()

    try:
        console.print("Refreshing session...", style="yellow")
        print_output(asyncio.run(_refresh()), output, title="Session Refreshed")
    except MediaVaultError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command()
def whoami(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show request details")] = False,
) -> None:
    """Show the signed-in user (GET /auth/me)."""
    client = MediaVaultClient.from_config(get_config(), verbose=verbose)

    async def _whoami() -> dict[str, object]:
        try:
            return await client.current_user()
        finally:
            await client.close()

    try:
        user = asyncio.run(_whoami())
        columns = [c for c in ("id", "username", "email", "role") if c in user] or None
        print_output(user, output, columns=columns, title="Current User")
    except MediaVaultError as e:
        handle_error(e)
        raise typer.Exit(1)
