"""
Repository Configuration and Factory

Provides the factory that hands out one repository per collection name,
all sharing the same MongoDB connection settings.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict

from .base import CollectionRepositoryInterface

logger = logging.getLogger(__name__)


@dataclass
class RepositoryConfig:
    """
    Configuration for repository initialization.

    Loaded from environment variables with sensible defaults.
    """
    mongodb_uri: str
    database: str = "job_tracker"

    @classmethod
    def from_env(cls) -> "RepositoryConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - MONGODB_URI (required): MongoDB connection string
        - MONGO_DB_NAME: Database name (default: job_tracker)

        Raises:
            ValueError: If MONGODB_URI is not set
        """
        mongodb_uri = os.getenv("MONGODB_URI")
        if not mongodb_uri:
            raise ValueError("MONGODB_URI environment variable is required")

        return cls(
            mongodb_uri=mongodb_uri,
            database=os.getenv("MONGO_DB_NAME", "job_tracker"),
        )


# Repository instances keyed by collection name
_repositories: Dict[str, CollectionRepositoryInterface] = {}


def get_repository(collection: str) -> CollectionRepositoryInterface:
    """
    Get the repository for a collection.

    Uses a per-collection singleton; every instance shares the pooled client.

    Args:
        collection: Collection name (e.g. Config.JOB_APPLICATIONS_COLLECTION)

    Raises:
        ValueError: If MongoDB URI is not configured
    """
    if collection not in _repositories:
        config = RepositoryConfig.from_env()

        from .atlas_repository import MongoCollectionRepository
        _repositories[collection] = MongoCollectionRepository(
            mongodb_uri=config.mongodb_uri,
            database=config.database,
            collection=collection,
        )
        logger.info(f"Initialized repository for collection '{collection}'")

    return _repositories[collection]


def reset_repositories() -> None:
    """
    Reset all repository singletons and the shared connection.

    Used for testing or when configuration changes.
    """
    if _repositories:
        from .atlas_repository import MongoCollectionRepository
        MongoCollectionRepository.reset_connection()

    _repositories.clear()
    logger.info("Repository singletons reset")
