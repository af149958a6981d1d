"""
Change set commands: run, status and new.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer

from changekeeper.cli.output import (
    console,
    print_error,
    print_json,
    print_report,
    print_status,
    print_success,
    print_warning,
)
from changekeeper.core.config import settings
from changekeeper.core.exceptions import ChangeExecutionFailedError, ChangeKeeperError
from changekeeper.migrations.discovery import CHANGELOG_FILENAME, discover_descriptors
from changekeeper.migrations.lock import LockPolicy
from changekeeper.migrations.models import RunStatus
from changekeeper.migrations.runner import ChangeRunner
from changekeeper.store.base import ChangeStore


def get_store() -> ChangeStore:
    """Get the configured ledger store."""
    from changekeeper.store.mongo import MongoChangeStore

    return MongoChangeStore.from_settings(settings)


def get_context(store: ChangeStore):
    """Object handed to change set functions (the database, for Mongo)."""
    return getattr(store, "database", None)


def build_policy(wait: bool, fail_if_locked: bool) -> LockPolicy:
    """Lock policy from settings, with the CLI deciding whether to wait and fail."""
    policy = settings.lock_policy
    return LockPolicy(
        wait_for_lock=wait,
        max_wait=policy.max_wait,
        poll_interval=policy.poll_interval,
        fail_if_unobtainable=fail_if_locked,
    )


DirOption = Annotated[
    Optional[Path],
    typer.Option("--dir", "-d", help="Changelogs directory (default: CHANGELOGS_DIR)"),
]
ProfileOption = Annotated[
    Optional[list[str]],
    typer.Option("--profile", "-p", help="Active profile (repeatable, default: ACTIVE_PROFILES)"),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def run(
    changelogs_dir: DirOption = None,
    profile: ProfileOption = None,
    wait: Annotated[
        bool,
        typer.Option("--wait/--no-wait", help="Poll for the lock if it is held (default: WAIT_FOR_LOCK)"),
    ] = settings.wait_for_lock,
    fail_if_locked: Annotated[
        bool,
        typer.Option(
            "--fail-if-locked/--skip-if-locked",
            help="Exit 1 if the lock is unobtainable (default: THROW_IF_LOCK_UNOBTAINABLE)",
        ),
    ] = settings.throw_if_lock_unobtainable,
    as_json: JsonOption = False,
):
    """Apply pending change sets."""

    async def _run():
        store = get_store()
        await store.initialize()
        descriptors = discover_descriptors(
            str(changelogs_dir or settings.changelogs_dir),
            context=get_context(store),
            active_profiles=profile or settings.profiles,
        )
        runner = ChangeRunner(store, policy=build_policy(wait, fail_if_locked))
        return await runner.execute(descriptors)

    try:
        report = asyncio.run(_run())
    except ChangeExecutionFailedError as e:
        if as_json:
            print_json({**e.to_dict(), "report": e.report.to_dict() if e.report else None})
        else:
            if e.report:
                print_report(e.report)
            print_error(str(e), {"code": e.error_code})
        raise typer.Exit(1)
    except ChangeKeeperError as e:
        if as_json:
            print_json(e.to_dict())
        else:
            print_error(e.message, {"code": e.error_code})
        raise typer.Exit(1)

    if as_json:
        print_json(report.to_dict())
        return

    if report.status == RunStatus.SKIPPED_LOCK_NOT_OBTAINED:
        print_warning("Process lock held by another runner; nothing was executed.")
        return

    print_report(report)
    if not report.invoked:
        print_success("No pending change sets to apply.")
    else:
        print_success(f"Applied {len(report.invoked)} change set(s).")


def status(
    changelogs_dir: DirOption = None,
    profile: ProfileOption = None,
    as_json: JsonOption = False,
):
    """Show which change sets are applied and who holds the lock."""

    async def _status():
        store = get_store()
        descriptors = discover_descriptors(
            str(changelogs_dir or settings.changelogs_dir),
            context=get_context(store),
            active_profiles=profile or settings.profiles,
        )
        return await ChangeRunner(store).get_status(descriptors)

    try:
        result = asyncio.run(_status())
    except ChangeKeeperError as e:
        print_error(f"Failed to get status: {e.message}", {"code": e.error_code})
        raise typer.Exit(1)

    if as_json:
        print_json(result)
    else:
        print_status(result)


CHANGELOG_TEMPLATE = '''"""
Changelog: {desc}
Created: {created}
"""

from changekeeper import changeset


@changeset(id={change_id!r}, author={author!r})
async def {func_name}(db) -> None:
    """{desc}"""
    raise NotImplementedError({change_id!r})
'''


def _docstring_text(text: str) -> str:
    """Escape text for use inside a triple-quoted docstring."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def new(
    name: Annotated[str, typer.Argument(help="Name for the changelog (use_underscores)")],
    author: Annotated[str, typer.Option("--author", "-a", help="Change set author")] = "changekeeper",
    description: Annotated[
        Optional[str],
        typer.Option("--description", help="Description of the change"),
    ] = None,
    changelogs_dir: DirOption = None,
):
    """Create a new changelog file."""

    if not name.isidentifier():
        print_error("Changelog name must be a valid identifier (letters, digits, underscores)")
        raise typer.Exit(1)

    target_dir = Path(changelogs_dir or settings.changelogs_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    versions = []
    for f in target_dir.iterdir():
        match = CHANGELOG_FILENAME.match(f.name)
        if match:
            versions.append(int(match.group(1)))

    next_version = max(versions, default=0) + 1
    filepath = target_dir / f"{next_version:03d}_{name}.py"
    desc = _docstring_text(description or name.replace("_", " ").capitalize())

    filepath.write_text(
        CHANGELOG_TEMPLATE.format(
            desc=desc,
            created=datetime.now().strftime("%Y-%m-%d"),
            change_id=f"{next_version:03d}-{name.replace('_', '-')}",
            author=author,
            func_name=name,
        )
    )

    console.print()
    print_success(f"Created changelog file: {filepath}")
