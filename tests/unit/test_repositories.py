"""
Tests for the collection repository layer.

Covers the factory, configuration loading and the pymongo-backed
implementation with a mocked client.
"""

from unittest.mock import MagicMock, patch

import pytest

from src.common.repositories import (
    CollectionRepositoryInterface,
    RepositoryConfig,
    WriteResult,
    get_repository,
    reset_repositories,
)
from src.common.repositories.atlas_repository import MongoCollectionRepository


@pytest.fixture(autouse=True)
def clean_repositories():
    reset_repositories()
    yield
    reset_repositories()


class TestWriteResult:
    """Tests for WriteResult dataclass."""

    def test_write_result_defaults(self):
        """WriteResult should have sensible defaults."""
        result = WriteResult(matched_count=1, modified_count=1)

        assert result.matched_count == 1
        assert result.modified_count == 1
        assert result.upserted_id is None


class TestRepositoryConfig:
    """Tests for RepositoryConfig."""

    def test_config_from_env(self):
        """Should load URI and database from environment."""
        env = {"MONGODB_URI": "mongodb://localhost", "MONGO_DB_NAME": "tracker"}
        with patch.dict("os.environ", env, clear=True):
            config = RepositoryConfig.from_env()

        assert config.mongodb_uri == "mongodb://localhost"
        assert config.database == "tracker"

    def test_config_default_database(self):
        """Should default the database name."""
        with patch.dict("os.environ", {"MONGODB_URI": "mongodb://localhost"}, clear=True):
            assert RepositoryConfig.from_env().database == "job_tracker"

    def test_config_requires_uri(self):
        """Should raise when MONGODB_URI is missing."""
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValueError, match="MONGODB_URI"):
                RepositoryConfig.from_env()


class TestRepositoryFactory:
    """Tests for get_repository()."""

    def test_one_instance_per_collection(self):
        """Should cache repositories by collection name."""
        with patch.dict("os.environ", {"MONGODB_URI": "mongodb://localhost"}, clear=True):
            users = get_repository("users")
            again = get_repository("users")
            applications = get_repository("jobapplications")

        assert users is again
        assert users is not applications
        assert isinstance(users, CollectionRepositoryInterface)
        assert applications.collection_name == "jobapplications"


class TestMongoCollectionRepository:
    """pymongo-backed repository with a mocked client."""

    @pytest.fixture
    def collection(self):
        return MagicMock()

    @pytest.fixture
    def repo(self, collection):
        client = MagicMock()
        client.__getitem__.return_value.__getitem__.return_value = collection
        with patch(
            "src.common.repositories.atlas_repository.MongoClient", return_value=client
        ):
            repository = MongoCollectionRepository("mongodb://localhost", "tracker", "users")
            repository._get_collection()
        yield repository
        MongoCollectionRepository.reset_connection()

    def test_find_applies_sort_skip_limit(self, repo, collection):
        """Should chain cursor modifiers only when requested."""
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.__iter__.return_value = iter([{"_id": 1}])
        collection.find.return_value = cursor

        docs = repo.find({"userId": "u1"}, sort=[("loginTime", -1)], limit=5)

        assert docs == [{"_id": 1}]
        cursor.sort.assert_called_once_with([("loginTime", -1)])
        cursor.limit.assert_called_once_with(5)
        cursor.skip.assert_not_called()

    def test_count_documents(self, repo, collection):
        """Should delegate counting to the collection."""
        collection.count_documents.return_value = 7

        assert repo.count_documents({"status": "applied"}) == 7

    def test_aggregate_returns_list(self, repo, collection):
        """Should materialise the aggregation cursor."""
        collection.aggregate.return_value = iter([{"_id": "Acme", "count": 3}])

        assert repo.aggregate([{"$group": {"_id": "$companyName"}}]) == [{"_id": "Acme", "count": 3}]

    def test_update_one_upsert(self, repo, collection):
        """Should return a WriteResult with the upserted id."""
        collection.update_one.return_value = MagicMock(matched_count=0, modified_count=0, upserted_id="abc")

        result = repo.update_one({"taskId": "t1"}, {"$set": {"active": True}}, upsert=True)

        assert result == WriteResult(matched_count=0, modified_count=0, upserted_id="abc")
        collection.update_one.assert_called_once_with({"taskId": "t1"}, {"$set": {"active": True}}, upsert=True)

    def test_errors_propagate(self, repo, collection):
        """Fail-fast: pymongo errors reach the caller."""
        collection.find_one.side_effect = RuntimeError("connection refused")

        with pytest.raises(RuntimeError):
            repo.find_one({"_id": "u1"})
