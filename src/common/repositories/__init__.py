"""
Repository Pattern for MongoDB Operations

Provides an abstraction layer over the application-tracking collections
read by the reporting service.

Public API:
- get_repository(collection): Factory to get a collection repository
- reset_repositories(): Drop cached repositories and the shared client
- CollectionRepositoryInterface: Abstract interface for one collection
- WriteResult: Result dataclass for write operations

Usage:
    from src.common.config import Config
    from src.common.repositories import get_repository

    applications = get_repository(Config.JOB_APPLICATIONS_COLLECTION)
    total = applications.count_documents({"userId": user_id})
"""

from .base import CollectionRepositoryInterface, WriteResult
from .config import (
    get_repository,
    reset_repositories,
    RepositoryConfig,
)

__all__ = [
    "get_repository",
    "reset_repositories",
    "CollectionRepositoryInterface",
    "WriteResult",
    "RepositoryConfig",
]
