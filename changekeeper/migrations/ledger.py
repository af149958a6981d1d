"""
Change ledger: which change sets have been applied.
"""

from typing import TYPE_CHECKING

from changekeeper.log.logging import logger
from changekeeper.migrations.models import ChangeEntry

if TYPE_CHECKING:
    from changekeeper.store.base import ChangeStore


class ChangeLedger:
    """
    Append-only record of applied change sets.

    Reads are point lookups by id so they see every earlier write from the
    lock holder. Writes are unconditional upserts: only the lock holder
    records entries, so a repeated id always carries the same intent.
    """

    def __init__(self, store: "ChangeStore"):
        self._store = store

    async def is_new(self, change_id: str) -> bool:
        """Return True if no entry with this id has been recorded."""
        return await self._store.get(change_id) is None

    async def get(self, change_id: str) -> ChangeEntry | None:
        return await self._store.get(change_id)

    async def record(self, entry: ChangeEntry) -> None:
        """Record a change set as applied, replacing any earlier entry for its id."""
        await self._store.put(entry)
        logger.debug(
            "Recorded change set {change_id}",
            change_id=entry.id,
            event_type="change_recorded",
        )
