"""
Change ledger data models and run reporting.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# Reserved ledger id for the process lock record
LOCK_ID = "LOCK"


@dataclass
class ChangeEntry:
    """
    One record in the change ledger.

    Ordinary entries mark an applied change set. The entry whose id is
    ``LOCK_ID`` is the process lock; its author is the holder's host name.

    Attributes:
        id: Unique change set id, used as the store's primary key.
        author: Change set author, or the lock holder's identity.
        timestamp: When the entry was written.
        origin_name: Changelog (module) that declared the change set.
        unit_name: Function within the changelog that implements it.
    """

    id: str
    author: Optional[str] = None
    timestamp: Optional[datetime] = None
    origin_name: Optional[str] = None
    unit_name: Optional[str] = None

    @property
    def is_lock(self) -> bool:
        return self.id == LOCK_ID

    def to_dict(self) -> dict:
        """Convert to dictionary for MongoDB storage."""
        return {
            "_id": self.id,
            "author": self.author,
            "timestamp": self.timestamp,
            "changeLogClass": self.origin_name,
            "changeSetMethod": self.unit_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeEntry":
        """Create from MongoDB document."""
        return cls(
            id=data["_id"],
            author=data.get("author"),
            timestamp=data.get("timestamp"),
            origin_name=data.get("changeLogClass"),
            unit_name=data.get("changeSetMethod"),
        )

    def __str__(self) -> str:
        return (
            f"[ChangeSet: id={self.id}, author={self.author}, timestamp={self.timestamp}, "
            f"changeLogClass={self.origin_name}, changeSetMethod={self.unit_name}]"
        )


@dataclass(frozen=True)
class ChangeDescriptor:
    """
    A change set ready to run, as produced by discovery.

    Attributes:
        id: Unique change set id.
        author: Change set author.
        origin: Changelog the change set belongs to.
        unit: Name of the operation within the changelog.
        invoke: Zero-argument callable applying the change; may return an awaitable.
        run_always: Re-run on every execution regardless of the ledger.
    """

    id: str
    author: str
    origin: str
    unit: str
    invoke: Callable[[], Union[Any, Awaitable[Any]]] = field(compare=False, repr=False)
    run_always: bool = False

    def to_entry(self, timestamp: datetime) -> ChangeEntry:
        return ChangeEntry(
            id=self.id,
            author=self.author,
            timestamp=timestamp,
            origin_name=self.origin,
            unit_name=self.unit,
        )


class RunStatus(str, Enum):
    """Terminal status of a run."""

    COMPLETED = "completed"
    SKIPPED_LOCK_NOT_OBTAINED = "skipped: lock not obtained"
    FAILED = "failed"


@dataclass
class ExecutionReport:
    """
    Outcome of a single ``ChangeRunner.execute`` call.

    Attributes:
        status: Terminal status of the run.
        invoked: Ids whose change logic ran and was recorded, in order.
        skipped: Ids skipped because they were already applied, in order.
        failed: Id of the change set that failed, if any.
    """

    status: RunStatus = RunStatus.COMPLETED
    invoked: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: Optional[str] = None

    @classmethod
    def lock_not_obtained(cls) -> "ExecutionReport":
        return cls(status=RunStatus.SKIPPED_LOCK_NOT_OBTAINED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "invoked": list(self.invoked),
            "skipped": list(self.skipped),
            "failed": self.failed,
        }
