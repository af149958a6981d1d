"""
Distributed process lock stored in the change ledger itself.

The lock is the ledger entry with the reserved id ``LOCK``. Acquiring it is a
put-if-absent of that entry, so the store's primary-key uniqueness decides the
single winner among concurrently starting processes. Releasing deletes it.

There is no expiry: a process that dies while holding the lock leaves the
entry in place until someone releases it by hand (``changekeeper lock release``).
"""

import asyncio
import os
import socket
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, AsyncIterator, Optional

from changekeeper.core.exceptions import LockUnobtainableError
from changekeeper.log.logging import logger
from changekeeper.migrations.models import LOCK_ID, ChangeEntry

if TYPE_CHECKING:
    from changekeeper.store.base import ChangeStore


@dataclass(frozen=True)
class LockPolicy:
    """
    How hard to try for the lock.

    Attributes:
        wait_for_lock: Keep polling after a failed first attempt.
        max_wait: Give up once this much time has passed since the first attempt.
        poll_interval: Sleep between attempts.
        fail_if_unobtainable: Raise ``LockUnobtainableError`` instead of returning False.
    """

    wait_for_lock: bool = False
    max_wait: timedelta = timedelta(minutes=5)
    poll_interval: timedelta = timedelta(seconds=10)
    fail_if_unobtainable: bool = False


def default_holder_identity() -> str:
    """Identity written as the lock entry's author, for diagnostics only."""
    try:
        host = socket.gethostname()
    except OSError:
        host = "UnknownHost"
    return f"{host}-{os.getpid()}"


class DistributedLock:
    """
    Advisory single-holder lock built on ``ChangeStore.put_if_absent``.

    Waiters are not queued: every poll races on the same conditional insert
    and the first to succeed wins.
    """

    def __init__(self, store: "ChangeStore", holder: Optional[str] = None):
        """
        Initialize the lock.

        Args:
            store: Store shared by every competing process.
            holder: Identity recorded on the lock entry (defaults to host-pid).
        """
        self._store = store
        self._holder = holder or default_holder_identity()

    @property
    def holder(self) -> str:
        return self._holder

    async def try_acquire(self, holder: Optional[str] = None) -> bool:
        """
        Make a single attempt to take the lock.

        Returns:
            True if the lock entry was inserted, False if it already exists.

        Raises:
            StoreUnavailableError: If the store fails for any other reason.
        """
        holder = holder or self._holder
        entry = ChangeEntry(
            id=LOCK_ID,
            author=holder,
            timestamp=datetime.now(timezone.utc),
        )
        acquired = await self._store.put_if_absent(entry)
        if acquired:
            logger.info("Process lock acquired", event_type="lock_acquired", holder=holder)
        else:
            logger.warning(
                "The process lock has already been acquired",
                event_type="lock_busy",
                holder=holder,
            )
        return acquired

    async def acquire_with_policy(
        self, policy: LockPolicy, holder: Optional[str] = None
    ) -> bool:
        """
        Take the lock, waiting and polling as the policy allows.

        Returns:
            True if acquired, False if given up and the policy does not fail.

        Raises:
            LockUnobtainableError: If given up and ``policy.fail_if_unobtainable``.
            StoreUnavailableError: If the store fails.
        """
        acquired = await self.try_acquire(holder)

        if not acquired and policy.wait_for_lock:
            poll_seconds = policy.poll_interval.total_seconds()
            started = time.monotonic()
            give_up_at = started + policy.max_wait.total_seconds()
            while not acquired and time.monotonic() < give_up_at:
                logger.info(
                    "Waiting for process lock",
                    event_type="lock_waiting",
                    poll_interval_seconds=poll_seconds,
                    waited_seconds=round(time.monotonic() - started, 3),
                )
                await asyncio.sleep(poll_seconds)
                acquired = await self.try_acquire(holder)

        if not acquired:
            logger.info(
                "Process lock not acquired",
                event_type="lock_unobtainable",
                wait_for_lock=policy.wait_for_lock,
                fail=policy.fail_if_unobtainable,
            )
            if policy.fail_if_unobtainable:
                raise LockUnobtainableError()

        return acquired

    async def release(self) -> None:
        """Delete the lock entry. Releasing a free lock is a no-op."""
        await self._store.delete(LOCK_ID)
        logger.info("Process lock released", event_type="lock_released", holder=self._holder)

    async def is_held(self) -> bool:
        """Whether any process currently holds the lock."""
        return await self._store.get(LOCK_ID) is not None

    async def current_holder(self) -> Optional[ChangeEntry]:
        """The lock entry, if present, for diagnostics."""
        return await self._store.get(LOCK_ID)

    @asynccontextmanager
    async def hold(
        self, policy: LockPolicy, holder: Optional[str] = None
    ) -> AsyncIterator[bool]:
        """
        Acquire for the duration of an ``async with`` block.

        Yields whether the lock was obtained. The lock is released on every
        exit path, but only if this block obtained it. If the block raised,
        a failure to release is logged and the block's error propagates.
        """
        acquired = await self.acquire_with_policy(policy, holder)
        try:
            yield acquired
        except BaseException:
            if acquired:
                try:
                    await self.release()
                except Exception:
                    logger.exception(
                        "Failed to release process lock",
                        event_type="lock_release_failed",
                        holder=self._holder,
                    )
            raise
        if acquired:
            await self.release()
