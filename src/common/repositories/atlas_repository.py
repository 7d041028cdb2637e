"""
MongoDB Collection Repository

pymongo-backed implementation of the collection interface. All collection
repositories share one MongoClient so the connection pool is reused across
the four source collections and the automation task-state collection.
"""

import logging
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from .base import CollectionRepositoryInterface, WriteResult

logger = logging.getLogger(__name__)


class MongoCollectionRepository(CollectionRepositoryInterface):
    """
    Repository over one MongoDB collection.

    Connection Management:
    - Uses a class-level singleton MongoClient for connection pooling
    - Client is created lazily on first access and shared by every instance
    - PyMongo handles connection pool internally

    Error Handling:
    - Fail-fast: All errors propagate to caller
    """

    _client: Optional[MongoClient] = None
    _db: Optional[Database] = None

    def __init__(self, mongodb_uri: str, database: str, collection: str):
        """
        Args:
            mongodb_uri: MongoDB connection string
            database: Database name
            collection: Collection name
        """
        self._mongodb_uri = mongodb_uri
        self._database_name = database
        self._collection_name = collection

    @property
    def collection_name(self) -> str:
        return self._collection_name

    def _get_collection(self) -> Collection:
        """
        Get the MongoDB collection, creating the shared client if needed.

        Returns:
            MongoDB collection instance
        """
        if MongoCollectionRepository._db is None:
            MongoCollectionRepository._client = MongoClient(self._mongodb_uri)
            MongoCollectionRepository._db = MongoCollectionRepository._client[self._database_name]
            logger.info(f"Mongo repository connected: {self._database_name}")
        return MongoCollectionRepository._db[self._collection_name]

    def find_one(
        self,
        filter: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None,
        sort: Optional[List[tuple]] = None,
    ) -> Optional[Dict[str, Any]]:
        collection = self._get_collection()
        return collection.find_one(filter, projection, sort=sort)

    def find(
        self,
        filter: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None,
        sort: Optional[List[tuple]] = None,
        limit: int = 0,
        skip: int = 0,
    ) -> List[Dict[str, Any]]:
        collection = self._get_collection()
        cursor = collection.find(filter, projection)

        if sort:
            cursor = cursor.sort(sort)
        if skip > 0:
            cursor = cursor.skip(skip)
        if limit > 0:
            cursor = cursor.limit(limit)

        return list(cursor)

    def count_documents(self, filter: Dict[str, Any]) -> int:
        collection = self._get_collection()
        return collection.count_documents(filter)

    def distinct(self, key: str, filter: Optional[Dict[str, Any]] = None) -> List[Any]:
        collection = self._get_collection()
        return collection.distinct(key, filter or {})

    def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        collection = self._get_collection()
        return list(collection.aggregate(pipeline))

    def update_one(
        self,
        filter: Dict[str, Any],
        update: Dict[str, Any],
        upsert: bool = False,
    ) -> WriteResult:
        """
        Update a single document.

        Fail-fast behavior: exceptions propagate to caller.
        """
        collection = self._get_collection()
        result = collection.update_one(filter, update, upsert=upsert)

        return WriteResult(
            matched_count=result.matched_count,
            modified_count=result.modified_count,
            upserted_id=str(result.upserted_id) if result.upserted_id else None,
        )

    def ping(self) -> bool:
        """Round-trip to the server; raises on connection failure."""
        self._get_collection()
        MongoCollectionRepository._client.admin.command("ping")
        return True

    @classmethod
    def reset_connection(cls) -> None:
        """
        Reset the connection pool.

        Used for testing or connection recovery.
        """
        if cls._client:
            cls._client.close()
        cls._client = None
        cls._db = None
        logger.info("Mongo repository connection reset")
