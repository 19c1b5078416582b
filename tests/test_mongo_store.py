import threading
import time
import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock

import mongomock
import pytest
from pymongo.errors import ServerSelectionTimeoutError

from src.taskapi.errors import StorageError
from src.taskapi.models import Priority
from src.taskapi.mongo import MongoTaskStore
from src.taskapi.schemas import TaskCreate

URI = "mongodb://localhost:27017"


def make_store(client_factory=mongomock.MongoClient) -> MongoTaskStore:
    # mongomock clients for the same host share data, so isolate by database name
    return MongoTaskStore(URI, database=f"test_{uuid.uuid4().hex}", client_factory=client_factory)


@pytest.fixture()
def store() -> MongoTaskStore:
    return make_store()


class TestMongoTaskStoreCRUD:
    def test_create_then_get_round_trip(self, store: MongoTaskStore):
        created = store.create(
            TaskCreate(title="Flashcards", priority="high", due_date="2099-05-01", category="French")
        )
        assert len(created["id"]) == 24
        assert created["completed"] is False
        assert created["priority"] is Priority.high
        assert created["due_date"] == datetime(2099, 5, 1, tzinfo=timezone.utc)
        assert created["created_at"].tzinfo is not None
        assert store.get(created["id"]) == created

    def test_list_is_newest_first(self, store: MongoTaskStore):
        ids = [store.create(TaskCreate(title=f"Task {i}"))["id"] for i in range(3)]
        assert [t["id"] for t in store.list()] == list(reversed(ids))

    def test_list_empty(self, store: MongoTaskStore):
        assert store.list() == []

    def test_update_merges_fields(self, store: MongoTaskStore):
        created = store.create(TaskCreate(title="Essay", priority="low", due_date="2099-01-01"))
        updated = store.update(created["id"], {"completed": True})
        assert updated is not None
        assert updated["completed"] is True
        for key in ("title", "priority", "due_date", "category", "created_at"):
            assert updated[key] == created[key]
        assert store.get(created["id"]) == updated

    def test_update_with_empty_patch_returns_current(self, store: MongoTaskStore):
        created = store.create(TaskCreate(title="Unchanged"))
        assert store.update(created["id"], {}) == created

    def test_update_rejects_immutable_fields(self, store: MongoTaskStore):
        created = store.create(TaskCreate(title="Fixed"))
        with pytest.raises(ValueError):
            store.update(created["id"], {"created_at": datetime.now(timezone.utc)})

    def test_delete_then_not_found(self, store: MongoTaskStore):
        tid = store.create(TaskCreate(title="Gone"))["id"]
        assert store.delete(tid) is True
        assert store.get(tid) is None
        assert store.delete(tid) is False
        assert store.update(tid, {"completed": True}) is None

    def test_malformed_ids_are_not_found(self, store: MongoTaskStore):
        assert store.get("not-an-object-id") is None
        assert store.update("not-an-object-id", {"title": "x"}) is None
        assert store.delete("not-an-object-id") is False

    def test_documents_from_older_schema(self, store: MongoTaskStore):
        store.connect()
        raw = {"title": "Legacy", "priority": "", "createdAt": datetime(2024, 1, 1)}
        store._collection.insert_one(raw)
        legacy = store.get(str(raw["_id"]))
        assert legacy is not None
        assert legacy["priority"] is Priority.medium
        assert legacy["completed"] is False
        assert legacy["category"] is None
        assert legacy["created_at"] == datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestMongoTaskStoreConnection:
    def test_connects_lazily_and_once(self):
        calls = []

        def factory(uri, **kwargs):
            calls.append(uri)
            return mongomock.MongoClient(uri, **kwargs)

        store = make_store(factory)
        assert not store.connected
        store.list()
        store.connect()
        store.create(TaskCreate(title="One"))
        assert store.connected
        assert calls == [URI]

    def test_concurrent_cold_start_builds_one_client(self):
        calls = []

        def slow_factory(uri, **kwargs):
            calls.append(uri)
            time.sleep(0.05)
            return mongomock.MongoClient(uri, **kwargs)

        store = make_store(slow_factory)
        threads = [threading.Thread(target=store.connect) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(calls) == 1

    def test_close_then_reconnect(self):
        calls = []

        def factory(uri, **kwargs):
            calls.append(uri)
            return mongomock.MongoClient(uri, **kwargs)

        store = make_store(factory)
        store.connect()
        store.close()
        assert not store.connected
        store.list()
        assert len(calls) == 2


class TestMongoTaskStoreFailures:
    def test_connect_failure_is_storage_error(self):
        client = MagicMock()
        client.__getitem__.return_value.__getitem__.return_value.create_index.side_effect = (
            ServerSelectionTimeoutError("no servers available")
        )
        store = make_store(lambda uri, **kwargs: client)
        with pytest.raises(StorageError) as excinfo:
            store.list()
        assert excinfo.value.operation == "connect"
        assert not store.connected

    def test_query_failure_is_storage_error(self):
        client = MagicMock()
        collection = client.__getitem__.return_value.__getitem__.return_value
        collection.find_one.side_effect = ServerSelectionTimeoutError("primary stepped down")
        store = make_store(lambda uri, **kwargs: client)
        with pytest.raises(StorageError) as excinfo:
            store.get("65a1f0c2e4b0a1b2c3d4e5f6")
        assert excinfo.value.operation == "get"

    def test_closed_between_connect_and_query_is_storage_error(self, store: MongoTaskStore, monkeypatch):
        store.connect()
        # another thread closes the store right after this call connected
        monkeypatch.setattr(store, "connect", store.close)
        with pytest.raises(StorageError) as excinfo:
            store.list()
        assert excinfo.value.operation == "list"
