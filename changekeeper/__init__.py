"""changekeeper: apply change sets to a data store exactly once, coordinated through the store itself."""

from changekeeper.migrations import (
    ChangeDescriptor,
    ChangeEntry,
    ChangeRunner,
    ExecutionReport,
    LockPolicy,
    RunStatus,
    changeset,
    discover_descriptors,
)

__version__ = "1.0.0"

__all__ = [
    "ChangeDescriptor",
    "ChangeEntry",
    "ChangeRunner",
    "ExecutionReport",
    "LockPolicy",
    "RunStatus",
    "changeset",
    "discover_descriptors",
    "__version__",
]
