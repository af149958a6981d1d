"""
Change runner for executing change sets under the process lock.
"""

import inspect
import time
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from changekeeper.core.exceptions import ChangeExecutionFailedError
from changekeeper.log.logging import logger
from changekeeper.migrations.ledger import ChangeLedger
from changekeeper.migrations.lock import DistributedLock, LockPolicy
from changekeeper.migrations.models import (
    ChangeDescriptor,
    ChangeEntry,
    ExecutionReport,
    RunStatus,
)

if TYPE_CHECKING:
    from changekeeper.store.base import ChangeStore


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Mongo hands back naive UTC datetimes unless the client is tz-aware
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class ChangeRunner:
    """
    Applies change sets in order, each at most once, under the process lock.

    Features:
    - Single holder across processes via the ledger's own lock entry
    - Point lookups decide whether a change set is new
    - Run-always change sets are re-invoked and re-recorded every run
    - Fail-fast: the first failing change set stops the run unrecorded
    - The lock is released on every exit path
    """

    def __init__(
        self,
        store: "ChangeStore",
        policy: Optional[LockPolicy] = None,
        holder: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the change runner.

        Args:
            store: Store holding both the ledger and the lock entry.
            policy: Lock wait policy (defaults to a single attempt, no raise).
            holder: Identity recorded on the lock entry.
            clock: Source of entry timestamps.
        """
        self._store = store
        self._policy = policy or LockPolicy()
        self._clock = clock
        self.ledger = ChangeLedger(store)
        self.lock = DistributedLock(store, holder)

    @property
    def policy(self) -> LockPolicy:
        return self._policy

    async def acquire_lock(self) -> bool:
        """Take the process lock according to the configured policy."""
        return await self.lock.acquire_with_policy(self._policy)

    async def release_lock(self) -> None:
        await self.lock.release()

    async def is_lock_held(self) -> bool:
        return await self.lock.is_held()

    async def execute(self, descriptors: Sequence[ChangeDescriptor]) -> ExecutionReport:
        """
        Run change sets in the given order.

        Args:
            descriptors: Change sets, already ordered and de-duplicated.

        Returns:
            Report of invoked and skipped ids. If the lock was not obtained and
            the policy does not raise, an empty report with status
            ``SKIPPED_LOCK_NOT_OBTAINED``.

        Raises:
            LockUnobtainableError: If the lock is unobtainable and the policy raises.
            ChangeExecutionFailedError: If a change set raised; earlier ones stay recorded.
            StoreUnavailableError: If the store fails.
        """
        async with self.lock.hold(self._policy) as acquired:
            if not acquired:
                logger.info(
                    "Change sets not executed: process lock not obtained",
                    event_type="run_skipped",
                )
                return ExecutionReport.lock_not_obtained()

            report = ExecutionReport()
            start_time = time.time()

            for descriptor in descriptors:
                await self._apply(descriptor, report)

            logger.info(
                "Change run completed: {invoked} invoked, {skipped} skipped",
                invoked=len(report.invoked),
                skipped=len(report.skipped),
                execution_time_ms=int((time.time() - start_time) * 1000),
                event_type="run_completed",
            )
            return report

    async def _apply(self, descriptor: ChangeDescriptor, report: ExecutionReport) -> None:
        previous: Optional[ChangeEntry] = None
        if descriptor.run_always:
            previous = await self.ledger.get(descriptor.id)
        elif not await self.ledger.is_new(descriptor.id):
            report.skipped.append(descriptor.id)
            logger.info(
                "Change set {change_id} already applied",
                change_id=descriptor.id,
                event_type="change_skipped",
            )
            return

        logger.info(
            "Applying change set {change_id} ({origin}.{unit})",
            change_id=descriptor.id,
            origin=descriptor.origin,
            unit=descriptor.unit,
            run_always=descriptor.run_always,
            event_type="change_applying",
        )

        start_time = time.time()
        try:
            await _invoke(descriptor)
        except Exception as e:
            report.status = RunStatus.FAILED
            report.failed = descriptor.id
            logger.error(
                "Change set {change_id} failed: {error}",
                change_id=descriptor.id,
                error=str(e),
                error_type=type(e).__name__,
                event_type="change_failed",
            )
            raise ChangeExecutionFailedError(descriptor.id, e, report) from e

        execution_time_ms = int((time.time() - start_time) * 1000)
        await self.ledger.record(descriptor.to_entry(self._next_timestamp(previous)))
        report.invoked.append(descriptor.id)

        logger.info(
            "Change set {change_id} applied",
            change_id=descriptor.id,
            execution_time_ms=execution_time_ms,
            event_type="change_applied",
        )

    def _next_timestamp(self, previous: Optional[ChangeEntry]) -> datetime:
        now = _as_utc(self._clock())
        if previous is not None and previous.timestamp is not None:
            last = _as_utc(previous.timestamp)
            if now <= last:
                # Mongo keeps millisecond precision
                now = last + timedelta(milliseconds=1)
        return now

    async def get_status(self, descriptors: Sequence[ChangeDescriptor]) -> dict[str, Any]:
        """
        Report which of the given change sets are applied, without taking the lock.

        Returns:
            Dictionary with per-change state and the lock holder, if any.
        """
        applied = []
        pending = []
        for descriptor in descriptors:
            entry = await self.ledger.get(descriptor.id)
            row = {
                "id": descriptor.id,
                "author": descriptor.author,
                "origin": descriptor.origin,
                "unit": descriptor.unit,
                "run_always": descriptor.run_always,
            }
            if entry is None:
                pending.append(row)
            else:
                row["applied_at"] = entry.timestamp.isoformat() if entry.timestamp else None
                applied.append(row)

        lock_entry = await self.lock.current_holder()
        return {
            "total": len(descriptors),
            "applied_count": len(applied),
            "pending_count": len(pending),
            "applied": applied,
            "pending": pending,
            "lock": {
                "held": lock_entry is not None,
                "holder": lock_entry.author if lock_entry else None,
                "acquired_at": (
                    lock_entry.timestamp.isoformat()
                    if lock_entry and lock_entry.timestamp
                    else None
                ),
            },
        }


async def _invoke(descriptor: ChangeDescriptor) -> Any:
    result = descriptor.invoke()
    if inspect.isawaitable(result):
        result = await result
    return result
