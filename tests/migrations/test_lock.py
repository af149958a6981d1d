"""Tests for the DistributedLock class."""

import os
import time
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from changekeeper.core.exceptions import LockUnobtainableError, StoreUnavailableError
from changekeeper.migrations.lock import DistributedLock, LockPolicy, default_holder_identity
from changekeeper.migrations.models import LOCK_ID


class TestTryAcquire:
    """Tests for single acquisition attempts."""

    @pytest.mark.asyncio
    async def test_acquire_free_lock(self, store):
        """Test acquiring a free lock inserts the lock entry."""
        lock = DistributedLock(store, holder="host-a")

        assert await lock.try_acquire() is True

        entry = await store.get(LOCK_ID)
        assert entry is not None
        assert entry.author == "host-a"
        assert entry.timestamp is not None

    @pytest.mark.asyncio
    async def test_acquire_held_lock_returns_false(self, store):
        """Test a second holder sees False without an error."""
        first = DistributedLock(store, holder="host-a")
        second = DistributedLock(store, holder="host-b")

        assert await first.try_acquire() is True
        assert await second.try_acquire() is False

        entry = await store.get(LOCK_ID)
        assert entry.author == "host-a"

    @pytest.mark.asyncio
    async def test_explicit_holder_overrides_default(self, store):
        """Test passing a holder identity per call."""
        lock = DistributedLock(store, holder="host-a")

        await lock.try_acquire("deploy-job-7")

        entry = await store.get(LOCK_ID)
        assert entry.author == "deploy-job-7"

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, store):
        """Test infrastructure errors are not reported as a held lock."""
        store.put_if_absent = AsyncMock(side_effect=StoreUnavailableError("put_if_absent", "down"))
        lock = DistributedLock(store)

        with pytest.raises(StoreUnavailableError):
            await lock.try_acquire()

    def test_default_holder_identity(self):
        """Test the default identity names host and pid."""
        identity = default_holder_identity()
        assert "-" in identity
        assert identity.endswith(str(os.getpid()))


class TestAcquireWithPolicy:
    """Tests for policy-driven acquisition."""

    @pytest.mark.asyncio
    async def test_immediate_success(self, store):
        """Test a free lock is taken without waiting."""
        lock = DistributedLock(store)

        assert await lock.acquire_with_policy(LockPolicy(wait_for_lock=True)) is True

    @pytest.mark.asyncio
    async def test_no_wait_returns_false(self, store):
        """Test a held lock with waiting disabled gives up at once."""
        await DistributedLock(store, holder="other").try_acquire()
        lock = DistributedLock(store)

        started = time.monotonic()
        result = await lock.acquire_with_policy(LockPolicy(wait_for_lock=False))

        assert result is False
        assert time.monotonic() - started < 1

    @pytest.mark.asyncio
    async def test_no_wait_raises_when_configured(self, store):
        """Test fail-fast raises LockUnobtainableError without waiting."""
        await DistributedLock(store, holder="other").try_acquire()
        lock = DistributedLock(store)

        with pytest.raises(LockUnobtainableError):
            await lock.acquire_with_policy(
                LockPolicy(wait_for_lock=False, fail_if_unobtainable=True)
            )

    @pytest.mark.asyncio
    async def test_wait_times_out(self, store):
        """Test waiting on a permanently held lock gives up after max_wait."""
        await DistributedLock(store, holder="other").try_acquire()
        store.put_if_absent = AsyncMock(wraps=store.put_if_absent)
        lock = DistributedLock(store)
        policy = LockPolicy(
            wait_for_lock=True,
            max_wait=timedelta(milliseconds=200),
            poll_interval=timedelta(milliseconds=50),
        )

        started = time.monotonic()
        result = await lock.acquire_with_policy(policy)
        elapsed = time.monotonic() - started

        assert result is False
        assert elapsed >= 0.2
        # One immediate attempt plus roughly one per poll interval
        assert 3 <= store.put_if_absent.await_count <= 7

    @pytest.mark.asyncio
    async def test_wait_times_out_and_raises(self, store):
        """Test timeout raises when fail_if_unobtainable is set."""
        await DistributedLock(store, holder="other").try_acquire()
        lock = DistributedLock(store)
        policy = LockPolicy(
            wait_for_lock=True,
            max_wait=timedelta(milliseconds=50),
            poll_interval=timedelta(milliseconds=10),
            fail_if_unobtainable=True,
        )

        with pytest.raises(LockUnobtainableError):
            await lock.acquire_with_policy(policy)

    @pytest.mark.asyncio
    async def test_wait_succeeds_after_release(self, store, fast_wait_policy):
        """Test a waiter gets the lock once the holder releases it."""
        other = DistributedLock(store, holder="other")
        await other.try_acquire()
        lock = DistributedLock(store, holder="waiter")

        attempts = 0
        original = store.put_if_absent

        async def release_on_third_attempt(entry):
            nonlocal attempts
            attempts += 1
            if attempts == 3:
                await other.release()
            return await original(entry)

        store.put_if_absent = release_on_third_attempt

        assert await lock.acquire_with_policy(fast_wait_policy) is True
        assert attempts == 3
        assert (await store.get(LOCK_ID)).author == "waiter"


class TestReleaseAndQuery:
    """Tests for release and is_held."""

    @pytest.mark.asyncio
    async def test_release_deletes_lock(self, store):
        """Test release frees the lock for the next holder."""
        lock = DistributedLock(store)
        await lock.try_acquire()

        await lock.release()

        assert await lock.is_held() is False
        assert await DistributedLock(store, holder="next").try_acquire() is True

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, store):
        """Test releasing a free lock does not raise."""
        lock = DistributedLock(store)

        await lock.release()
        await lock.release()

        assert await lock.is_held() is False

    @pytest.mark.asyncio
    async def test_is_held(self, store):
        """Test is_held reflects the lock entry."""
        lock = DistributedLock(store)
        assert await lock.is_held() is False

        await lock.try_acquire()

        assert await lock.is_held() is True
        assert (await lock.current_holder()).author == lock.holder


class TestHold:
    """Tests for scoped acquisition."""

    @pytest.mark.asyncio
    async def test_hold_releases_on_exit(self, store):
        """Test the lock is released when the block exits."""
        lock = DistributedLock(store)

        async with lock.hold(LockPolicy()) as acquired:
            assert acquired is True
            assert await lock.is_held() is True

        assert await lock.is_held() is False

    @pytest.mark.asyncio
    async def test_hold_releases_on_error(self, store):
        """Test the lock is released when the block raises."""
        lock = DistributedLock(store)

        with pytest.raises(ValueError):
            async with lock.hold(LockPolicy()):
                raise ValueError("boom")

        assert await lock.is_held() is False

    @pytest.mark.asyncio
    async def test_hold_does_not_release_foreign_lock(self, store):
        """Test a block that did not get the lock leaves the holder's entry alone."""
        await DistributedLock(store, holder="other").try_acquire()
        lock = DistributedLock(store)

        async with lock.hold(LockPolicy()) as acquired:
            assert acquired is False

        assert (await store.get(LOCK_ID)).author == "other"
