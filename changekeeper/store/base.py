from abc import ABC, abstractmethod
from typing import Optional

from changekeeper.migrations.models import ChangeEntry


class ChangeStore(ABC):
    """
    Point-access storage for ledger entries, keyed by entry id.

    Implementations must make ``put_if_absent`` atomic: the process lock is
    only sound if exactly one concurrent caller can win it for a given key.
    Failures other than a key conflict are raised as ``StoreUnavailableError``.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create the backing table or collection if it does not exist."""
        pass

    @abstractmethod
    async def get(self, entry_id: str) -> Optional[ChangeEntry]:
        """Look up an entry by primary key."""
        pass

    @abstractmethod
    async def put(self, entry: ChangeEntry) -> None:
        """Insert or replace an entry."""
        pass

    @abstractmethod
    async def put_if_absent(self, entry: ChangeEntry) -> bool:
        """Insert an entry only if its key is free. Returns False on conflict."""
        pass

    @abstractmethod
    async def delete(self, entry_id: str) -> None:
        """Delete an entry by primary key. Deleting a missing key is a no-op."""
        pass
