"""
MongoDB change store.

The change id is the document ``_id``, so the collection's primary-key
uniqueness provides put-if-absent: ``insert_one`` raises ``DuplicateKeyError``
when the key is already taken.
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import CollectionInvalid, DuplicateKeyError, PyMongoError

from changekeeper.core.exceptions import StoreUnavailableError
from changekeeper.log.logging import logger
from changekeeper.migrations.models import ChangeEntry
from changekeeper.store.base import ChangeStore


class MongoChangeStore(ChangeStore):
    """``ChangeStore`` backed by a single MongoDB collection."""

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str):
        """
        Initialize the store.

        Args:
            db: MongoDB database instance.
            collection_name: Name of the ledger collection.
        """
        self._db = db
        self._collection_name = collection_name
        self._collection = db[collection_name]

    @classmethod
    def from_settings(cls, settings) -> "MongoChangeStore":
        """Build a store from ``Settings`` (connection URI, database, ledger name)."""
        client = AsyncIOMotorClient(
            settings.mongodb,
            serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
        )
        return cls(client[settings.mongodb_database], settings.ledger_table_name)

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def database(self) -> AsyncIOMotorDatabase:
        """Database handed to change set functions."""
        return self._db

    async def initialize(self) -> None:
        """Find or create the ledger collection."""
        logger.info(
            "Searching for an existing ledger collection",
            event_type="ledger_lookup",
            collection=self._collection_name,
        )
        try:
            existing = await self._db.list_collection_names(
                filter={"name": self._collection_name}
            )
            if existing:
                logger.info(
                    "Ledger collection found",
                    event_type="ledger_initialized",
                    collection=self._collection_name,
                )
                return

            logger.info(
                "Creating ledger collection",
                event_type="ledger_creating",
                collection=self._collection_name,
            )
            try:
                await self._db.create_collection(self._collection_name)
            except CollectionInvalid:
                # Another process created it between the lookup and the create
                pass
            logger.info(
                "Ledger collection created",
                event_type="ledger_initialized",
                collection=self._collection_name,
            )
        except PyMongoError as e:
            raise StoreUnavailableError("initialize", str(e)) from e

    async def get(self, entry_id: str) -> Optional[ChangeEntry]:
        try:
            doc = await self._collection.find_one({"_id": entry_id})
        except PyMongoError as e:
            raise StoreUnavailableError("get", str(e)) from e
        return ChangeEntry.from_dict(doc) if doc is not None else None

    async def put(self, entry: ChangeEntry) -> None:
        try:
            await self._collection.replace_one(
                {"_id": entry.id}, entry.to_dict(), upsert=True
            )
        except PyMongoError as e:
            raise StoreUnavailableError("put", str(e)) from e

    async def put_if_absent(self, entry: ChangeEntry) -> bool:
        try:
            await self._collection.insert_one(entry.to_dict())
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            raise StoreUnavailableError("put_if_absent", str(e)) from e
        return True

    async def delete(self, entry_id: str) -> None:
        try:
            await self._collection.delete_one({"_id": entry_id})
        except PyMongoError as e:
            raise StoreUnavailableError("delete", str(e)) from e
