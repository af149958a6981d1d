"""
Discovery of change sets from changelog files.

A changelog is a Python file named ``NNN_name.py`` inside the changelogs
directory. Change sets are functions in it marked with ``@changeset``:

    profiles = ["!test"]          # optional, applies to every change set here

    @changeset(id="001-create-users-index", author="ops")
    async def create_users_index(db):
        await db["users"].create_index("email", unique=True)

Changelogs run in filename version order; change sets within a changelog run
in ``order`` order, then in the order they are defined.
"""

import functools
import importlib.util
import inspect
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence

from changekeeper.core.exceptions import (
    DuplicateChangeIdError,
    InvalidChangeLogError,
    ReservedChangeIdError,
)
from changekeeper.log.logging import logger
from changekeeper.migrations.models import LOCK_ID, ChangeDescriptor

DEFAULT_PROFILE = "default"
CHANGELOG_FILENAME = re.compile(r"^(\d+)_(.+)\.py$")
CHANGESET_ATTR = "__changeset__"


@dataclass(frozen=True)
class ChangeSetMeta:
    """Metadata attached to a function by ``@changeset``."""

    id: str
    author: str
    order: Optional[int] = None
    run_always: bool = False
    profiles: tuple[str, ...] = ()


def changeset(
    id: str,
    author: str,
    order: Optional[int] = None,
    run_always: bool = False,
    profiles: Iterable[str] = (),
) -> Callable[[Callable], Callable]:
    """
    Mark a function as a change set.

    Args:
        id: Unique change set id (must not be the reserved lock id).
        author: Who wrote it.
        order: Position within its changelog; unordered ones run after, in definition order.
        run_always: Re-run on every execution.
        profiles: Profiles the change set is active for; ``"!name"`` negates.
    """

    def decorator(func: Callable) -> Callable:
        setattr(
            func,
            CHANGESET_ATTR,
            ChangeSetMeta(
                id=id,
                author=author,
                order=order,
                run_always=run_always,
                profiles=tuple(profiles),
            ),
        )
        return func

    return decorator


def profile_predicate(active_profiles: Optional[Sequence[str]] = None) -> Callable[[Sequence[str]], bool]:
    """
    Build the profile filter for a set of active profiles.

    The returned predicate takes the profiles declared on a changelog or change
    set. No declared profiles always matches. ``"!name"`` matches when ``name``
    is not active. Any other declared profile matches when it is active.
    """
    active = set(active_profiles or [DEFAULT_PROFILE])

    def matches(declared: Sequence[str]) -> bool:
        if not declared:
            return True
        for profile in declared:
            if not profile:
                continue
            if profile.startswith("!"):
                if profile[1:] not in active:
                    return True
            elif profile in active:
                return True
        return False

    return matches


@dataclass
class ChangeLogModule:
    """A loaded changelog file."""

    version: int
    name: str
    file_path: str
    module: Any

    @property
    def profiles(self) -> tuple[str, ...]:
        return tuple(getattr(self.module, "profiles", ()) or ())

    def changesets(self) -> list[tuple[ChangeSetMeta, Callable]]:
        """Marked functions defined in this changelog, in run order."""
        found = []
        for _, member in inspect.getmembers(self.module, callable):
            meta = getattr(member, CHANGESET_ATTR, None)
            # Change sets imported from elsewhere belong to their own module
            if getattr(member, "__module__", None) != self.module.__name__:
                continue
            if isinstance(meta, ChangeSetMeta):
                found.append((meta, member))

        def sort_key(item: tuple[ChangeSetMeta, Callable]):
            meta, func = item
            line = getattr(getattr(func, "__code__", None), "co_firstlineno", 0)
            return (meta.order is None, meta.order or 0, line)

        return sorted(found, key=sort_key)


def load_changelog(file_path: str) -> Optional[ChangeLogModule]:
    """
    Load a changelog from a Python file.

    Returns:
        The loaded changelog, or None if the filename is not a changelog name.

    Raises:
        InvalidChangeLogError: If the file cannot be imported.
    """
    filename = os.path.basename(file_path)
    match = CHANGELOG_FILENAME.match(filename)
    if not match:
        logger.warning(
            "Skipping invalid changelog filename: {filename}",
            filename=filename,
            event_type="changelog_skip",
        )
        return None

    version = int(match.group(1))
    name = match.group(2)

    spec = importlib.util.spec_from_file_location(f"changelog_{version}_{name}", file_path)
    if spec is None or spec.loader is None:
        raise InvalidChangeLogError(f"Cannot load changelog {filename}")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise InvalidChangeLogError(f"Error loading changelog {filename}: {e}") from e

    return ChangeLogModule(version=version, name=name, file_path=file_path, module=module)


def discover_changelogs(changelogs_dir: str) -> list[ChangeLogModule]:
    """Load every changelog in a directory, sorted by version then filename."""
    if not os.path.isdir(changelogs_dir):
        logger.warning(
            "Changelogs directory not found: {path}",
            path=changelogs_dir,
            event_type="changelogs_dir_missing",
        )
        return []

    changelogs = []
    for filename in sorted(os.listdir(changelogs_dir)):
        if filename.endswith(".py") and not filename.startswith("_"):
            changelog = load_changelog(os.path.join(changelogs_dir, filename))
            if changelog:
                changelogs.append(changelog)

    changelogs.sort(key=lambda c: (c.version, os.path.basename(c.file_path)))
    return changelogs


def _bind(func: Callable, context: Any) -> Callable[[], Any]:
    if inspect.signature(func).parameters:
        return functools.partial(func, context)
    return func


def build_descriptors(
    changelogs: Sequence[ChangeLogModule],
    context: Any = None,
    active_profiles: Optional[Sequence[str]] = None,
) -> list[ChangeDescriptor]:
    """
    Turn loaded changelogs into ordered descriptors.

    Raises:
        DuplicateChangeIdError: If two active change sets share an id.
        ReservedChangeIdError: If a change set uses the lock id.
    """
    matches = profile_predicate(active_profiles)
    seen: set[str] = set()
    descriptors = []

    for changelog in changelogs:
        if not matches(changelog.profiles):
            logger.debug(
                "Changelog {name} inactive for current profiles",
                name=changelog.name,
                event_type="changelog_filtered",
            )
            continue

        for meta, func in changelog.changesets():
            if meta.id == LOCK_ID:
                raise ReservedChangeIdError(meta.id)
            if not matches(meta.profiles):
                continue
            if meta.id in seen:
                raise DuplicateChangeIdError(meta.id)
            seen.add(meta.id)

            descriptors.append(
                ChangeDescriptor(
                    id=meta.id,
                    author=meta.author,
                    origin=f"{changelog.version:03d}_{changelog.name}",
                    unit=func.__name__,
                    invoke=_bind(func, context),
                    run_always=meta.run_always,
                )
            )

    return descriptors


def discover_descriptors(
    changelogs_dir: str,
    context: Any = None,
    active_profiles: Optional[Sequence[str]] = None,
) -> list[ChangeDescriptor]:
    """
    Discover the ordered, profile-filtered change sets in a directory.

    Args:
        changelogs_dir: Directory holding ``NNN_name.py`` changelog files.
        context: Passed to change set functions that take an argument (usually the database).
        active_profiles: Active profiles; defaults to ``["default"]``.
    """
    descriptors = build_descriptors(discover_changelogs(changelogs_dir), context, active_profiles)
    logger.info(
        "Discovered {count} change sets",
        count=len(descriptors),
        path=str(Path(changelogs_dir)),
        event_type="changes_discovered",
    )
    return descriptors
