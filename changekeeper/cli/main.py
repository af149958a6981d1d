"""CLI entry point for changekeeper."""

from typing import Annotated, Optional

import typer
from rich.console import Console

from changekeeper import __version__
from changekeeper.cli.commands import changes, lock
from changekeeper.core.config import settings
from changekeeper.log.logging import configure_logging

# Create main app
app = typer.Typer(
    name="changekeeper",
    help="Apply change sets to MongoDB exactly once, coordinated through a ledger lock",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register commands
app.command("run")(changes.run)
app.command("status")(changes.status)
app.command("new")(changes.new)
app.add_typer(lock.app, name="lock", help="Process lock commands")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"changekeeper version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", envvar="LOG_LEVEL", help="Log level"),
    ] = None,
) -> None:
    """
    changekeeper CLI.

    Discovers change sets in a changelogs directory and applies each one
    exactly once, using a lock record in the ledger collection so that only
    one runner works at a time.

    [bold]Quick Start:[/bold]

        # Scaffold a changelog
        changekeeper new create_user_indexes

        # Apply pending change sets
        changekeeper run --dir changelogs

        # See what is applied
        changekeeper status

        # Clear a lock left behind by a crashed runner
        changekeeper lock release

    [bold]Environment Variables:[/bold]

        MONGODB, MONGODB_DATABASE     - Target database
        LEDGER_TABLE_NAME             - Ledger collection
        WAIT_FOR_LOCK                 - Poll when the lock is held
        LOCK_WAIT_TIMEOUT_MINUTES     - Give up after this long
        LOCK_POLL_INTERVAL_SECONDS    - Poll interval
        THROW_IF_LOCK_UNOBTAINABLE    - Fail instead of skipping
    """
    config = settings.logging_config
    if log_level:
        config["log_level"] = log_level.upper()
    configure_logging(config)


if __name__ == "__main__":
    app()
