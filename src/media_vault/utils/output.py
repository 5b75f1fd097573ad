"""Rendering of API bodies and session state for the CLI.

JSON and CSV go to stdout so they can be piped. Tables go to stderr through
rich, which keeps stdout clean for agents.
"""

from __future__ import annotations

import csv
import json
import sys
from datetime import datetime
from enum import Enum
from typing import Any

from rich.console import Console
from rich.table import Table

from media_vault.models.auth import TokenStatus

console = Console(stderr=True)

Rows = list[dict[str, Any]]

# Envelope fields the API sends next to the payload itself.
_ENVELOPE_KEYS = {"success", "message", "total", "page", "limit", "pages"}


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"


def print_output(
    data: Rows | dict[str, Any],
    fmt: OutputFormat = OutputFormat.TABLE,
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print rows or a single record in the requested format."""
    if fmt == OutputFormat.JSON:
        print_json(data)
        return
    rows = [data] if isinstance(data, dict) else data
    if fmt == OutputFormat.CSV:
        print_csv(rows, columns)
    else:
        print_table(rows, columns, title)


def print_response(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> None:
    """Print a decoded API body.

    JSON output is the body as received. Table and CSV output unwrap an
    envelope such as ``{"success": true, "files": [...]}`` to its rows; bodies
    with no tabular shape fall back to JSON.
    """
    if fmt == OutputFormat.JSON:
        print_json(data)
        return
    rows = extract_rows(data)
    if rows is None:
        print_json(data)
    else:
        print_output(rows, fmt)


def extract_rows(data: Any) -> Rows | None:
    """Find the list of records in an API body, or None if there is none."""
    if isinstance(data, list):
        return data if all(isinstance(row, dict) for row in data) else None
    if not isinstance(data, dict):
        return None
    payload = {k: v for k, v in data.items() if k not in _ENVELOPE_KEYS}
    lists = [v for v in payload.values() if isinstance(v, list)]
    if len(payload) == 1 and len(lists) == 1:
        return extract_rows(lists[0])
    if len(payload) == 1 and isinstance(next(iter(payload.values())), dict):
        return [next(iter(payload.values()))]
    return [data]


def session_summary(status: TokenStatus) -> dict[str, Any]:
    """Flatten a TokenStatus into one displayable record."""
    return {
        "has_token": status.has_token,
        "is_expired": status.is_expired,
        "should_refresh": status.should_refresh,
        "expires_at": status.expires_at.isoformat() if status.expires_at else "N/A",
        "expires_in": _duration(status.seconds_remaining),
    }


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def print_table(rows: Rows, columns: list[str] | None = None, title: str | None = None) -> None:
    """Print rows as a rich table on stderr."""
    if not rows:
        console.print("[dim]No results.[/dim]")
        return

    columns = columns or _columns(rows)
    table = Table(title=title, show_lines=False)
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*[_cell(row.get(col)) for col in columns])
    console.print(table)


def print_csv(rows: Rows, columns: list[str] | None = None) -> None:
    """Print rows as CSV to stdout."""
    if not rows:
        return

    columns = columns or _columns(rows)
    writer = csv.DictWriter(sys.stdout, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({col: _cell(row.get(col)) for col in columns})


def _columns(rows: Rows) -> list[str]:
    # Union of keys in first-seen order; API records are often sparse.
    seen: dict[str, None] = {}
    for row in rows:
        seen.update(dict.fromkeys(row))
    return list(seen)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _duration(seconds: int | None) -> str:
    if seconds is None or seconds <= 0:
        return "expired"
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"
