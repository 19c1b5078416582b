"""
Client-side task list kept in step with the API.

TaskSync holds the tasks in memory and applies each mutation locally only
after the server confirmed it. Failures are logged and leave the local list
as it was; nothing is raised to the caller.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from .progress import ProgressStats, compute_progress
from .schemas import TaskOut

logger = logging.getLogger("taskapi.sync")


class TaskSync:
    def __init__(self, client: httpx.Client, tasks_path: str = "/tasks") -> None:
        self._client = client
        self._path = tasks_path.rstrip("/")
        self._tasks: List[TaskOut] = []

    @property
    def tasks(self) -> List[TaskOut]:
        return list(self._tasks)

    def load(self) -> List[TaskOut]:
        """
        Replace the local list with the server's. A failed request or a body
        that is not a well-formed task array leaves an empty list.
        """
        try:
            response = self._client.get(self._path)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError):
            logger.exception("sync.load_failed", extra={"category": "sync", "event": "sync.load_failed"})
            self._tasks = []
            return self.tasks

        if not isinstance(data, list):
            logger.error(
                "sync.invalid_payload",
                extra={"category": "sync", "event": "sync.invalid_payload", "payload_type": type(data).__name__},
            )
            self._tasks = []
            return self.tasks

        try:
            self._tasks = [TaskOut.model_validate(item) for item in data]
        except ValidationError:
            logger.exception("sync.invalid_payload", extra={"category": "sync", "event": "sync.invalid_payload"})
            self._tasks = []
        return self.tasks

    def add(self, new_task: Dict[str, Any]) -> Optional[TaskOut]:
        """
        POST a new task and append the server's copy (with its id) to the
        end of the local list. Local order may drift from the server's
        newest-first order until the next load().
        """
        try:
            response = self._client.post(self._path, json=new_task)
            response.raise_for_status()
            created = TaskOut.model_validate(response.json())
        except (httpx.HTTPError, ValueError):
            logger.exception("sync.add_failed", extra={"category": "sync", "event": "sync.add_failed"})
            return None
        self._tasks.append(created)
        return created

    def update(self, task: TaskOut) -> bool:
        """
        PATCH the whole local object and, once the server accepts it, put the
        local object in place of the entry with the same id. The response
        body is not read back.
        """
        try:
            response = self._client.patch(
                f"{self._path}/{task.id}",
                json=task.model_dump(mode="json", by_alias=True),
            )
            response.raise_for_status()
        except httpx.HTTPError:
            logger.exception(
                "sync.update_failed",
                extra={"category": "sync", "event": "sync.update_failed", "task_id": task.id},
            )
            return False
        self._tasks = [task if t.id == task.id else t for t in self._tasks]
        return True

    def delete(self, task_id: str) -> bool:
        try:
            response = self._client.delete(f"{self._path}/{task_id}")
            response.raise_for_status()
        except httpx.HTTPError:
            logger.exception(
                "sync.delete_failed",
                extra={"category": "sync", "event": "sync.delete_failed", "task_id": task_id},
            )
            return False
        self._tasks = [t for t in self._tasks if t.id != task_id]
        return True

    def progress(self, now: Optional[datetime] = None) -> ProgressStats:
        return compute_progress(self._tasks, now=now)
