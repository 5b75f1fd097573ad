"""Structured error handling for agent-friendly output."""

from __future__ import annotations

import json
import sys

from rich.console import Console

from media_vault.exceptions import MediaVaultError

console = Console(stderr=True)

_LOGIN_HINT = "Session expired or missing — run `media-vault auth login`"

# Actionable hints keyed by error code
_CODE_HINTS: dict[str, str] = {
    "SESSION_EXPIRED": _LOGIN_HINT,
    "UNAUTHORIZED": _LOGIN_HINT,
    "REFRESH_FAILED": _LOGIN_HINT,
    "NETWORK_UNREACHABLE": "Check network connectivity and MEDIA_VAULT_API_URL",
    "STORAGE_ERROR": "Check that MEDIA_VAULT_TOKEN_FILE is writable",
}

# Fallback hints keyed by error substring
_ERROR_HINTS: list[tuple[str, str]] = [
    ("401", _LOGIN_HINT),
    ("unauthorized", _LOGIN_HINT),
    ("token", _LOGIN_HINT),
    ("403", "Your account lacks permission for this resource"),
    ("forbidden", "Your account lacks permission for this resource"),
    ("404", "The resource does not exist — verify the path"),
    ("429", "Rate limited — wait a moment and retry"),
    ("too many", "Rate limited — wait a moment and retry"),
    ("profile", "Check your config/profiles.yaml profile names"),
    ("timeout", "Request timed out — try again or check network connectivity"),
    ("unreachable", "Check network connectivity and MEDIA_VAULT_API_URL"),
    ("connection", "Check network connectivity and MEDIA_VAULT_API_URL"),
]


def _get_hint(error_message: str, code: str | None = None) -> str | None:
    """Match an error to an actionable hint."""
    if code and code in _CODE_HINTS:
        return _CODE_HINTS[code]
    lower = error_message.lower()
    for pattern, hint in _ERROR_HINTS:
        if pattern.lower() in lower:
            return hint
    return None


def _get_code(error: Exception) -> str:
    """Determine an error code from the exception type or its message."""
    if isinstance(error, MediaVaultError):
        return error.code

    message = str(error).lower()
    if "401" in message or "unauthorized" in message:
        return "UNAUTHORIZED"
    if "timeout" in message:
        return "TIMEOUT"
    if "connection" in message or "unreachable" in message:
        return "NETWORK_UNREACHABLE"
    if isinstance(error, ValueError):
        return "INVALID_ARGUMENT"
    return "RUNTIME_ERROR"


def handle_error(error: Exception) -> None:
    """Handle an error with structured output to stdout and human-readable output to stderr.

    Outputs a JSON error object to stdout for agent consumption:
    {"error": true, "code": "SESSION_EXPIRED", "message": "...", "hint": "..."}

    Also prints a human-readable error to stderr.
    """
    message = str(error)
    code = _get_code(error)
    hint = _get_hint(message, code)

    # Structured JSON to stdout for agents
    error_obj: dict[str, object] = {
        "error": True,
        "code": code,
        "message": message,
    }
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        error_obj["status_code"] = status_code
    if hint:
        error_obj["hint"] = hint

    json.dump(error_obj, sys.stdout)
    sys.stdout.write("\n")

    # Human-readable to stderr
    console.print(f"[red]Error:[/red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
