"""
Repository Interface Definitions

Defines the abstract interface the reporting layer uses to read the
application-tracking collections (job applications, users, sessions,
resumes) and to persist automation task state.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class WriteResult:
    """
    Result of a write operation.

    Attributes:
        matched_count: Number of documents that matched the filter
        modified_count: Number of documents actually modified
        upserted_id: ID of upserted document (if any)
    """
    matched_count: int
    modified_count: int
    upserted_id: Optional[str] = None


class CollectionRepositoryInterface(ABC):
    """
    Abstract interface for a single MongoDB collection.

    The analytics service never writes to the source collections; the only
    write paths are the automation task-state upserts.

    All methods follow fail-fast semantics: driver errors propagate to the
    caller, which decides whether to wrap or degrade.
    """

    @property
    @abstractmethod
    def collection_name(self) -> str:
        """Name of the underlying collection."""
        pass

    @abstractmethod
    def find_one(
        self,
        filter: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None,
        sort: Optional[List[tuple]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Find a single document.

        Args:
            filter: MongoDB query filter (e.g., {"_id": ObjectId(...)})
            projection: Fields to include/exclude
            sort: Sort order applied before picking the first match

        Returns:
            Document dict if found, None otherwise
        """
        pass

    @abstractmethod
    def find(
        self,
        filter: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None,
        sort: Optional[List[tuple]] = None,
        limit: int = 0,
        skip: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Find multiple documents.

        Args:
            filter: MongoDB query filter
            projection: Fields to include/exclude
            sort: Sort order as list of (field, direction) tuples
            limit: Maximum documents to return (0 = no limit)
            skip: Number of documents to skip

        Returns:
            List of matching documents
        """
        pass

    @abstractmethod
    def count_documents(self, filter: Dict[str, Any]) -> int:
        """Count documents matching the filter."""
        pass

    @abstractmethod
    def distinct(self, key: str, filter: Optional[Dict[str, Any]] = None) -> List[Any]:
        """Distinct values of `key` among documents matching the filter."""
        pass

    @abstractmethod
    def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Run an aggregation pipeline.

        Args:
            pipeline: List of aggregation stages

        Returns:
            List of result documents
        """
        pass

    @abstractmethod
    def update_one(
        self,
        filter: Dict[str, Any],
        update: Dict[str, Any],
        upsert: bool = False,
    ) -> WriteResult:
        """
        Update a single document.

        Args:
            filter: MongoDB query filter
            update: Update operations (e.g., {"$set": {...}})
            upsert: Create document if not found

        Returns:
            WriteResult with match/modify counts
        """
        pass

    @abstractmethod
    def ping(self) -> bool:
        """Check the store is reachable. Raises on connection failure."""
        pass
