from datetime import timedelta
from typing import Callable

import pytest

from changekeeper.migrations.lock import LockPolicy
from changekeeper.migrations.models import ChangeDescriptor
from changekeeper.store.memory import InMemoryChangeStore


class CallRecorder:
    """Tracks which change sets were invoked, in order."""

    def __init__(self):
        self.calls: list[str] = []

    def count(self, change_id: str) -> int:
        return self.calls.count(change_id)


# Store fixtures
@pytest.fixture
def store():
    """Fresh in-memory ledger store."""
    return InMemoryChangeStore()


@pytest.fixture
def calls():
    return CallRecorder()


@pytest.fixture
def make_descriptor(calls) -> Callable[..., ChangeDescriptor]:
    """Factory for descriptors whose invocation is recorded in ``calls``."""

    def factory(change_id: str, run_always: bool = False, fail: bool = False, is_async: bool = True):
        def sync_invoke():
            calls.calls.append(change_id)
            if fail:
                raise RuntimeError(f"change {change_id} exploded")

        async def async_invoke():
            sync_invoke()

        return ChangeDescriptor(
            id=change_id,
            author="tester",
            origin="001_test_changelog",
            unit=f"change_{change_id}",
            invoke=async_invoke if is_async else sync_invoke,
            run_always=run_always,
        )

    return factory


# Lock policy fixtures
@pytest.fixture
def fast_wait_policy():
    """Waits briefly with a short poll so contention tests stay quick."""
    return LockPolicy(
        wait_for_lock=True,
        max_wait=timedelta(seconds=5),
        poll_interval=timedelta(milliseconds=10),
        fail_if_unobtainable=False,
    )
