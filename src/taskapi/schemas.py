from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from .models import Priority

# Shared type for incoming dueDate which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Internal helper to normalize dueDate input into a UTC datetime.
    - If value is a string, attempt to parse via datetime.fromisoformat; if time is missing, set to 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - Naive datetimes are taken to be UTC; aware ones are converted to UTC.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        # Promote a date to a datetime at midnight
        parsed = datetime(value.year, value.month, value.day, 0, 0, 0)
    elif isinstance(value, str):
        s = value.strip()
        # Python < 3.11 does not accept a trailing 'Z' in fromisoformat
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(s)
        except ValueError:
            try:
                d = date.fromisoformat(s)
            except ValueError as e:
                raise ValueError(
                    "Invalid dueDate format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e
            parsed = datetime(d.year, d.month, d.day, 0, 0, 0)
    else:
        raise ValueError("Invalid type for dueDate; expected date, datetime, or ISO8601 string.")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _validate_title(value: str) -> str:
    s = value.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("title length must be between 1 and 200 characters")
    return s


_CREATE_DEFAULTS: Dict[str, Any] = {"completed": False, "priority": Priority.medium}


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new Task.

    Only `title` is required. `completed` and `priority` fall back to their
    defaults when omitted or sent as null.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "title": "Revise chapter 3",
                "completed": False,
                "priority": "high",
                "dueDate": "2025-02-01",
                "category": "Biology",
            }
        },
    )

    title: str = Field(..., description="Short title for the task (1..200 characters after trimming)")
    completed: bool = Field(default=False, description="Completion status flag")
    priority: Priority = Field(default=Priority.medium, description="Task priority: low, medium or high")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the task. Accepts ISO8601 date or datetime; dates are set to 00:00 UTC",
    )
    category: Optional[str] = Field(default=None, description="Optional category label")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _validate_title(v)

    @field_validator("completed", "priority", mode="before")
    @classmethod
    def default_when_null(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return _CREATE_DEFAULTS[info.field_name]
        return v

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        """
        Normalize dueDate from str/date/datetime to a UTC datetime.
        """
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for a merge-patch of an existing Task.
    All fields are optional; only fields present with a non-null value change.
    Unknown keys (id, createdAt, ...) are ignored so a client may send back a
    whole task object.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "completed": True,
                "priority": "low",
            }
        },
    )

    title: Optional[str] = Field(default=None, description="Short title for the task (1..200 characters after trimming)")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    priority: Optional[Priority] = Field(default=None, description="Task priority: low, medium or high")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the task. Accepts ISO8601 date or datetime; dates are set to 00:00 UTC",
    )
    category: Optional[str] = Field(default=None, description="Optional category label")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        return _validate_title(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)

    def changes(self) -> Dict[str, Any]:
        """
        Return the patch set: field name -> new value for every field the
        caller supplied with a non-null value.
        """
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a Task.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "65a1f0c2e4b0a1b2c3d4e5f6",
                "title": "Revise chapter 3",
                "completed": False,
                "priority": "medium",
                "dueDate": "2025-02-01T00:00:00Z",
                "category": None,
                "createdAt": "2025-01-25T10:15:30.123000Z",
            }
        },
    )

    id: str = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    completed: bool = Field(..., description="Completion status flag")
    priority: Priority = Field(..., description="Task priority")
    due_date: Optional[datetime] = Field(
        default=None, description="Due date/time of the task as an ISO8601 datetime"
    )
    category: Optional[str] = Field(default=None, description="Optional category label")
    created_at: datetime = Field(..., description="Creation timestamp")


class MessageOut(BaseModel):
    """Plain confirmation payload."""

    message: str = Field(..., description="Human-readable confirmation")
