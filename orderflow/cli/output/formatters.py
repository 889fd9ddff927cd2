"""Rich output helpers shared by the CLI commands."""

import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

# Order statuses and worker outcomes
STATUS_STYLES = {
    "confirmed": "green",
    "pending": "cyan",
    "replayed": "yellow",
    "dropped": "red",
    "retry": "magenta",
}


def _cell(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if value is None:
        return "[dim]-[/dim]"
    return str(value)


def format_status(status: str) -> str:
    """
    Wrap a status or outcome in its Rich style.

    >>> format_status("CONFIRMED")
    '[green]CONFIRMED[/green]'
    """
    style = STATUS_STYLES.get(status.lower(), "white")
    return f"[{style}]{status}[/{style}]"


def format_table(
    data: List[Dict[str, Any]],
    columns: List[str],
    title: Optional[str] = None,
) -> None:
    """
    Print rows as a table.

    Any column named "Status" is colored with format_status.
    """
    if not data:
        console.print("[dim]No data to display[/dim]")
        return

    table = Table(title=title, box=box.ROUNDED, header_style="bold magenta")
    for column in columns:
        table.add_column(column, style="cyan")

    for row in data:
        table.add_row(
            *(
                format_status(str(row.get(c, ""))) if c.lower() == "status" else _cell(row.get(c, ""))
                for c in columns
            )
        )

    console.print(table)


def format_json(data: Any, indent: int = 2) -> None:
    """
    Print data as JSON.

    Highlighted on a terminal; printed verbatim when piped so the output
    stays machine-readable.
    """
    text = json.dumps(data, indent=indent, default=str)
    if console.is_terminal:
        console.print(Syntax(text, "json", theme="monokai"))
    else:
        console.print(text, markup=False, highlight=False, soft_wrap=True)


def format_plain(items: Iterable[str]) -> None:
    """Print one bare item per line (order ids, statuses)."""
    for item in items:
        console.print(item, markup=False, highlight=False)


def format_panel(content: str, title: Optional[str] = None, border_style: str = "blue") -> None:
    console.print(Panel(content, title=title, border_style=border_style, box=box.ROUNDED))


def format_key_value(data: Dict[str, Any], title: Optional[str] = None) -> None:
    """Print a record as indented ``key: value`` lines."""
    if title:
        console.print(f"\n[bold magenta]{title}[/bold magenta]")

    for key, value in data.items():
        text = json.dumps(value, default=str) if isinstance(value, dict) else _cell(value)
        if key == "status":
            text = format_status(text)
        console.print(f"  [cyan]{key}:[/cyan] {text}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    err_console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    err_console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    console.print(f"[blue]i[/blue] {message}")
