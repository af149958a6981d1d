"""Output formatting utilities for CLI."""

import json
from datetime import datetime
from typing import Any

from rich.console import Console
from rich.table import Table
from rich.text import Text

from changekeeper.migrations.models import ExecutionReport

console = Console()
error_console = Console(stderr=True)


def format_timestamp(ts: str | datetime | None) -> str:
    """Format a timestamp for display."""
    if ts is None:
        return "-"
    if isinstance(ts, str):
        try:
            ts = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        except ValueError:
            return ts
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def format_status(status: str) -> Text:
    """Format status with color."""
    colors = {
        "completed": "green",
        "applied": "green",
        "pending": "yellow",
        "failed": "red",
        "held": "red",
        "free": "green",
    }
    color = colors.get(status.lower(), "yellow" if status.lower().startswith("skipped") else "white")
    return Text(status, style=color)


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, default=str, indent=2))


def print_error(message: str, details: dict | None = None) -> None:
    """Print an error message."""
    error_console.print(f"[red]Error:[/red] {message}")
    if details:
        for key, value in details.items():
            error_console.print(f"  [dim]{key}:[/dim] {value}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def print_report(report: ExecutionReport) -> None:
    """Print the outcome of a run."""
    console.print()
    console.print("[bold]Run Status:[/bold] ", format_status(report.status.value))

    if report.invoked:
        table = Table(title="Applied Change Sets", show_header=True)
        table.add_column("#", style="dim")
        table.add_column("Id", style="green")
        for i, change_id in enumerate(report.invoked, 1):
            table.add_row(str(i), change_id)
        console.print(table)

    if report.skipped:
        console.print(f"[dim]Already applied: {', '.join(report.skipped)}[/dim]")

    if report.failed:
        console.print(f"[red]Failed: {report.failed}[/red]")


def print_status(result: dict) -> None:
    """Print per-change status and lock state."""
    lock = result["lock"]

    console.print()
    console.print("[bold]Change Set Status[/bold]")
    console.print(f"  Total:    [cyan]{result['total']}[/cyan]")
    console.print(f"  Applied:  [green]{result['applied_count']}[/green]")
    console.print(f"  Pending:  [yellow]{result['pending_count']}[/yellow]")
    console.print("  Lock:     ", format_status("held" if lock["held"] else "free"))
    if lock["held"]:
        console.print(
            f"  Holder:   {lock['holder']} (since {format_timestamp(lock['acquired_at'])})"
        )
    console.print()

    if result["applied"]:
        table = Table(title="Applied Change Sets", show_header=True)
        table.add_column("Id", style="cyan")
        table.add_column("Author", style="white")
        table.add_column("Changelog", style="white")
        table.add_column("Applied At", style="green")

        for row in result["applied"]:
            table.add_row(
                row["id"],
                row["author"],
                f"{row['origin']}.{row['unit']}",
                format_timestamp(row["applied_at"]),
            )

        console.print(table)
        console.print()

    if result["pending"]:
        table = Table(title="Pending Change Sets", show_header=True)
        table.add_column("Id", style="yellow")
        table.add_column("Author", style="white")
        table.add_column("Changelog", style="dim")

        for row in result["pending"]:
            table.add_row(row["id"], row["author"], f"{row['origin']}.{row['unit']}")

        console.print(table)
    else:
        console.print("[green]All change sets are applied![/green]")
