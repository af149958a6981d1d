"""
Manual process lock commands.
"""

import asyncio
from typing import Annotated

import typer

from changekeeper.cli.commands.changes import JsonOption, build_policy, get_store
from changekeeper.cli.output import (
    console,
    format_status,
    format_timestamp,
    print_error,
    print_json,
    print_success,
    print_warning,
)
from changekeeper.core.exceptions import ChangeKeeperError
from changekeeper.migrations.runner import ChangeRunner

app = typer.Typer(name="lock", help="Process lock commands")


def get_runner(wait: bool = False) -> ChangeRunner:
    """Get a runner over the configured store."""
    return ChangeRunner(get_store(), policy=build_policy(wait=wait, fail_if_locked=False))


@app.command("status")
def status(as_json: JsonOption = False):
    """Show whether the process lock is held, and by whom."""

    async def _status():
        runner = get_runner()
        return await runner.lock.current_holder()

    try:
        entry = asyncio.run(_status())
    except ChangeKeeperError as e:
        print_error(e.message, {"code": e.error_code})
        raise typer.Exit(1)

    data = {
        "held": entry is not None,
        "holder": entry.author if entry else None,
        "acquired_at": entry.timestamp.isoformat() if entry and entry.timestamp else None,
    }
    if as_json:
        print_json(data)
        return

    console.print("Lock: ", format_status("held" if data["held"] else "free"))
    if data["held"]:
        console.print(f"  Holder: {data['holder']}")
        console.print(f"  Since:  {format_timestamp(data['acquired_at'])}")


@app.command("acquire")
def acquire(
    wait: Annotated[
        bool,
        typer.Option("--wait/--no-wait", help="Poll for the lock if it is held"),
    ] = False,
):
    """Take the process lock and keep it until released."""

    async def _acquire():
        runner = get_runner(wait=wait)
        return await runner.acquire_lock()

    try:
        acquired = asyncio.run(_acquire())
    except ChangeKeeperError as e:
        print_error(e.message, {"code": e.error_code})
        raise typer.Exit(1)

    if not acquired:
        print_warning("Process lock is held by another runner.")
        raise typer.Exit(1)
    print_success("Process lock acquired. Release it with 'changekeeper lock release'.")


@app.command("release")
def release(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Skip confirmation prompt"),
    ] = False,
):
    """Delete the process lock entry, whoever holds it."""

    if not force:
        confirm = typer.confirm(
            "Releasing a lock held by a live runner allows concurrent runs. Continue?"
        )
        if not confirm:
            console.print("[yellow]Release cancelled.[/yellow]")
            raise typer.Exit(0)

    async def _release():
        runner = get_runner()
        await runner.release_lock()

    try:
        asyncio.run(_release())
    except ChangeKeeperError as e:
        print_error(e.message, {"code": e.error_code})
        raise typer.Exit(1)

    print_success("Process lock released.")
