from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, TypedDict


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    Storage-level representation of a Task shared by every store backend.

    Fields:
    - id: Opaque unique identifier assigned by the store
    - title: Short title (1..200 chars, trimmed on input via schemas)
    - completed: Boolean completion flag
    - priority: One of low/medium/high
    - due_date: Optional due datetime (UTC)
    - category: Optional free-form category
    - created_at: UTC creation timestamp, never changed after insert
    """

    id: str
    title: str
    completed: bool
    priority: Priority
    due_date: Optional[datetime]
    category: Optional[str]
    created_at: datetime
