"""
Change set runner for applying discrete changes to a data store exactly once.

This module provides the change ledger, the distributed process lock that
lives in the same store, and the runner that ties them together.
"""

from changekeeper.migrations.discovery import changeset, discover_descriptors
from changekeeper.migrations.ledger import ChangeLedger
from changekeeper.migrations.lock import DistributedLock, LockPolicy
from changekeeper.migrations.models import (
    LOCK_ID,
    ChangeDescriptor,
    ChangeEntry,
    ExecutionReport,
    RunStatus,
)
from changekeeper.migrations.runner import ChangeRunner

__all__ = [
    "LOCK_ID",
    "ChangeDescriptor",
    "ChangeEntry",
    "ChangeLedger",
    "ChangeRunner",
    "DistributedLock",
    "ExecutionReport",
    "LockPolicy",
    "RunStatus",
    "changeset",
    "discover_descriptors",
]
