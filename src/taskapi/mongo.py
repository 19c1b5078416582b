from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, Generator, List, Mapping, Optional

from bson import ObjectId
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from .errors import StorageError
from .models import Priority, TaskEntity
from .repositories import TaskStore, _patch_set
from .schemas import TaskCreate

logger = logging.getLogger("taskapi.store")


@dataclass(frozen=True)
class _Fields:
    id: str = "_id"
    title: str = "title"
    completed: str = "completed"
    priority: str = "priority"
    due_date: str = "dueDate"
    category: str = "category"
    created_at: str = "createdAt"


_F = _Fields()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _bson_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """BSON dates carry millisecond precision; truncate before writing."""
    value = _as_utc(value)
    if value is None:
        return None
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def _object_id(task_id: str) -> Optional[ObjectId]:
    if not ObjectId.is_valid(task_id):
        return None
    return ObjectId(task_id)


def _priority(raw: Any) -> Priority:
    # Documents written by older schema revisions may hold an empty or unknown priority.
    try:
        return Priority(raw)
    except ValueError:
        return Priority.medium


class MongoTaskStore(TaskStore):
    """
    Task store backed by a MongoDB collection.

    The client is created lazily on first use and shared by every request.
    Concurrent first calls are serialized so only one client is ever built.
    """

    def __init__(
        self,
        uri: str,
        *,
        database: str = "studyboard",
        collection: str = "tasks",
        client_factory: Callable[..., MongoClient] = MongoClient,
    ) -> None:
        self._uri = uri
        self._database_name = database
        self._collection_name = collection
        self._client_factory = client_factory
        self._client: Optional[MongoClient] = None
        self._collection: Optional[Collection] = None
        self._connect_lock = Lock()

    @property
    def connected(self) -> bool:
        return self._collection is not None

    def connect(self) -> None:
        if self._collection is not None:
            return
        with self._connect_lock:
            if self._collection is not None:
                return
            try:
                client = self._client_factory(self._uri, tz_aware=True)
                collection = client[self._database_name][self._collection_name]
                collection.create_index([(_F.created_at, DESCENDING)])
            except PyMongoError as e:
                logger.error(
                    "store.connect_failed",
                    extra={"category": "store", "event": "store.connect_failed", "error": str(e)},
                )
                raise StorageError("could not connect to MongoDB", operation="connect") from e
            self._client = client
            self._collection = collection
            logger.info(
                "store.connected",
                extra={
                    "category": "store",
                    "event": "store.connected",
                    "database": self._database_name,
                    "collection": self._collection_name,
                },
            )

    def close(self) -> None:
        with self._connect_lock:
            if self._client is not None:
                self._client.close()
            self._client = None
            self._collection = None

    @contextmanager
    def _tasks(self, operation: str) -> Generator[Collection, None, None]:
        self.connect()
        collection = self._collection
        if collection is None:
            raise StorageError("MongoDB connection is closed", operation=operation)
        try:
            yield collection
        except PyMongoError as e:
            raise StorageError(f"MongoDB {operation} failed: {e}", operation=operation) from e

    def _to_entity(self, doc: Mapping[str, Any]) -> TaskEntity:
        return {
            "id": str(doc[_F.id]),
            "title": str(doc.get(_F.title) or ""),
            "completed": bool(doc.get(_F.completed, False)),
            "priority": _priority(doc.get(_F.priority)),
            "due_date": _as_utc(doc.get(_F.due_date)),
            "category": doc.get(_F.category),
            "created_at": _as_utc(doc.get(_F.created_at)),  # type: ignore
        }

    def _to_document(self, changes: Mapping[str, Any]) -> Dict[str, Any]:
        doc: Dict[str, Any] = {}
        for name, value in changes.items():
            if isinstance(value, Priority):
                value = value.value
            elif isinstance(value, datetime):
                value = _bson_datetime(value)
            doc[getattr(_F, name)] = value
        return doc

    def create(self, data: TaskCreate) -> TaskEntity:
        doc = self._to_document(
            {
                "title": data.title,
                "completed": data.completed,
                "priority": data.priority,
                "due_date": data.due_date,
                "category": data.category,
                "created_at": datetime.now(timezone.utc),
            }
        )
        with self._tasks("create") as tasks:
            # insert_one stores the generated ObjectId back into doc
            tasks.insert_one(doc)
        return self._to_entity(doc)

    def get(self, task_id: str) -> Optional[TaskEntity]:
        oid = _object_id(task_id)
        if oid is None:
            return None
        with self._tasks("get") as tasks:
            doc = tasks.find_one({_F.id: oid})
        return self._to_entity(doc) if doc else None

    def update(self, task_id: str, changes: Mapping[str, Any]) -> Optional[TaskEntity]:
        patch = _patch_set(changes)
        oid = _object_id(task_id)
        if oid is None:
            return None
        if not patch:
            return self.get(task_id)
        with self._tasks("update") as tasks:
            doc = tasks.find_one_and_update(
                {_F.id: oid},
                {"$set": self._to_document(patch)},
                return_document=ReturnDocument.AFTER,
            )
        return self._to_entity(doc) if doc else None

    def delete(self, task_id: str) -> bool:
        oid = _object_id(task_id)
        if oid is None:
            return False
        with self._tasks("delete") as tasks:
            result = tasks.delete_one({_F.id: oid})
        return result.deleted_count > 0

    def list(self) -> List[TaskEntity]:
        with self._tasks("list") as tasks:
            docs = list(tasks.find().sort([(_F.created_at, DESCENDING), (_F.id, DESCENDING)]))
        return [self._to_entity(d) for d in docs]
