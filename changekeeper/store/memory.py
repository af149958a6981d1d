"""
In-memory change store.

Note: This implementation only coordinates coroutines within one process.
Use it for tests and dry runs; use ``MongoChangeStore`` across processes.
"""

import asyncio
from dataclasses import replace
from typing import Optional

from changekeeper.migrations.models import ChangeEntry
from changekeeper.store.base import ChangeStore


class InMemoryChangeStore(ChangeStore):
    """Dict-backed ``ChangeStore``."""

    def __init__(self) -> None:
        self._entries: dict[str, ChangeEntry] = {}
        self._guard = asyncio.Lock()

    async def initialize(self) -> None:
        pass

    async def get(self, entry_id: str) -> Optional[ChangeEntry]:
        entry = self._entries.get(entry_id)
        return replace(entry) if entry is not None else None

    async def put(self, entry: ChangeEntry) -> None:
        async with self._guard:
            self._entries[entry.id] = replace(entry)

    async def put_if_absent(self, entry: ChangeEntry) -> bool:
        async with self._guard:
            if entry.id in self._entries:
                return False
            self._entries[entry.id] = replace(entry)
            return True

    async def delete(self, entry_id: str) -> None:
        async with self._guard:
            self._entries.pop(entry_id, None)

    def entries(self) -> list[ChangeEntry]:
        """Snapshot of every stored entry, lock record included."""
        return [replace(e) for e in self._entries.values()]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries
