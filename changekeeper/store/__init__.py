"""
Ledger storage backends.

Every backend implements the same four point operations (get, put,
put-if-absent, delete) plus a provisioning hook.
"""

from changekeeper.store.base import ChangeStore
from changekeeper.store.memory import InMemoryChangeStore
from changekeeper.store.mongo import MongoChangeStore

__all__ = ["ChangeStore", "InMemoryChangeStore", "MongoChangeStore"]
