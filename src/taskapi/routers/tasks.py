from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..progress import ProgressStats, compute_progress
from ..repositories import TaskStore
from ..schemas import MessageOut, TaskCreate, TaskOut, TaskUpdate

logger = logging.getLogger("taskapi.tasks")

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)

_NOT_FOUND = "Task not found"


# PUBLIC_INTERFACE
def get_store(request: Request) -> TaskStore:
    """
    Dependency returning the process-wide store built by create_app.
    """
    return request.app.state.store


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TaskOut],
    summary="List Tasks",
    description="Return every task, newest first. An empty collection yields an empty array.",
    responses={
        200: {"description": "List retrieved successfully"},
        500: {"description": "Storage failure"},
    },
)
def list_tasks(store: TaskStore = Depends(get_store)) -> List[TaskOut]:
    """
    List all tasks ordered by createdAt descending.
    """
    return [TaskOut(**it) for it in store.list()]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new task and return the stored document.",
    responses={
        201: {"description": "Task created successfully"},
        400: {"description": "Validation error"},
        500: {"description": "Storage failure"},
    },
)
def create_task(payload: TaskCreate, store: TaskStore = Depends(get_store)) -> TaskOut:
    """
    Create a new task. The store assigns id and createdAt.
    """
    created = store.create(payload)
    logger.info(
        "task.create",
        extra={"category": "tasks", "event": "task.create", "task_id": created["id"]},
    )
    return TaskOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/stats",
    response_model=ProgressStats,
    summary="Progress Statistics",
    description=(
        "Completion rate, deadlines and per-priority breakdown over all tasks. "
        "\"Today\" and \"this week\" are measured in `tz`, UTC when omitted."
    ),
    responses={
        200: {"description": "Statistics computed"},
        400: {"description": "Unknown time zone"},
    },
)
def task_stats(
    tz: Optional[str] = Query(None, description="IANA time zone of the caller, e.g. Europe/Berlin"),
    store: TaskStore = Depends(get_store),
) -> ProgressStats:
    """
    Progress over all tasks as of the current time in `tz`.
    """
    zone = timezone.utc
    if tz:
        try:
            zone = ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown time zone") from None
    tasks = [TaskOut(**it) for it in store.list()]  # type: ignore[arg-type]
    return compute_progress(tasks, now=datetime.now(zone))


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single task by id.",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
def get_task(task_id: str, store: TaskStore = Depends(get_store)) -> TaskOut:
    """
    Retrieve a single task by its id.
    """
    item = store.get(task_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return TaskOut(**item)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description=(
        "Merge-patch a task: only fields present with a non-null value change. "
        "Null values and unknown keys are ignored."
    ),
    responses={
        200: {"description": "Task updated"},
        400: {"description": "Validation error"},
        404: {"description": "Task not found"},
    },
)
def patch_task(task_id: str, payload: TaskUpdate, store: TaskStore = Depends(get_store)) -> TaskOut:
    """
    Partial update of a task.
    """
    changes = payload.changes()
    updated = store.update(task_id, changes)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    logger.info(
        "task.update",
        extra={
            "category": "tasks",
            "event": "task.update",
            "task_id": task_id,
            "fields": sorted(changes),
        },
    )
    return TaskOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    response_model=MessageOut,
    summary="Delete Task",
    description="Delete a task by id.",
    responses={
        200: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
def delete_task(task_id: str, store: TaskStore = Depends(get_store)) -> MessageOut:
    """
    Delete a task. Deleting an unknown or already deleted id is a 404.
    """
    if not store.delete(task_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    logger.info(
        "task.delete",
        extra={"category": "tasks", "event": "task.delete", "task_id": task_id},
    )
    return MessageOut(message="Task deleted successfully")
