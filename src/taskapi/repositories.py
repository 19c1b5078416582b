from __future__ import annotations

import itertools
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .models import TaskEntity
from .schemas import TaskCreate
from .settings import Settings

# Fields a merge-patch may touch; id and created_at are immutable.
PATCHABLE_FIELDS = frozenset({"title", "completed", "priority", "due_date", "category"})


# PUBLIC_INTERFACE
class TaskStore(ABC):
    """
    Abstract contract for task storage backends.

    Missing tasks are reported through return values (None / False); any
    failure of the underlying database raises StorageError.
    """

    @abstractmethod
    def connect(self) -> None:
        """Open the shared connection if it is not open yet. Idempotent."""

    @abstractmethod
    def close(self) -> None:
        """Release the connection. A later operation reconnects lazily."""

    @abstractmethod
    def list(self) -> List[TaskEntity]:
        """Return every task, newest createdAt first."""

    @abstractmethod
    def create(self, data: TaskCreate) -> TaskEntity:
        """Persist a new task with a store-assigned id and createdAt."""

    @abstractmethod
    def get(self, task_id: str) -> Optional[TaskEntity]:
        """Return a task by id, or None if not found."""

    @abstractmethod
    def update(self, task_id: str, changes: Mapping[str, Any]) -> Optional[TaskEntity]:
        """
        Apply a merge-patch: every key in `changes` replaces the stored value,
        all other fields are left untouched. Return the updated task or None
        if not found.
        """

    @abstractmethod
    def delete(self, task_id: str) -> bool:
        """Delete a task by id. Return True if deleted, False if not found."""


def _patch_set(changes: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(changes) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"fields cannot be patched: {', '.join(sorted(unknown))}")
    return dict(changes)


class InMemoryTaskStore(TaskStore):
    """
    Thread-safe in-memory store suitable for testing and local development.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, Tuple[int, TaskEntity]] = {}
        # Insertion counter breaks createdAt ties so ordering stays newest-first.
        self._seq = itertools.count()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def connect(self) -> None:
        return None

    def close(self) -> None:
        return None

    def create(self, data: TaskCreate) -> TaskEntity:
        entity: TaskEntity = {
            "id": uuid.uuid4().hex,
            "title": data.title,
            "completed": data.completed,
            "priority": data.priority,
            "due_date": data.due_date,
            "category": data.category,
            "created_at": self._now(),
        }
        with self._lock:
            self._items[entity["id"]] = (next(self._seq), entity)
        return entity.copy()

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._lock:
            found = self._items.get(task_id)
            return None if found is None else found[1].copy()

    def update(self, task_id: str, changes: Mapping[str, Any]) -> Optional[TaskEntity]:
        patch = _patch_set(changes)
        with self._lock:
            found = self._items.get(task_id)
            if found is None:
                return None
            seq, existing = found
            updated = existing.copy()
            updated.update(patch)  # type: ignore[typeddict-item]
            self._items[task_id] = (seq, updated)
            return updated.copy()

    def delete(self, task_id: str) -> bool:
        with self._lock:
            return self._items.pop(task_id, None) is not None

    def list(self) -> List[TaskEntity]:
        with self._lock:
            ordered = sorted(
                self._items.values(),
                key=lambda item: (item[1]["created_at"], item[0]),
                reverse=True,
            )
            # Return copies to avoid external mutation
            return [entity.copy() for _, entity in ordered]


# PUBLIC_INTERFACE
def build_store(settings: Settings) -> TaskStore:
    """
    Construct the configured store. Called once per process; the returned
    handle is shared by every request.
    - memory: InMemoryTaskStore
    - mongo: MongoTaskStore (connects lazily on first use)
    """
    if settings.persistence_backend == "memory":
        return InMemoryTaskStore()

    from .mongo import MongoTaskStore

    settings.validate()
    return MongoTaskStore(
        settings.mongodb_uri,  # type: ignore[arg-type]
        database=settings.mongodb_database,
        collection=settings.mongodb_collection,
    )
