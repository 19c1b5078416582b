"""
Progress statistics over a task list: completion rate, deadline pressure and
a per-priority breakdown, plus the encouragement line shown with them.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import Priority
from .schemas import TaskOut


class PriorityProgress(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int = Field(..., description="Tasks with this priority")
    completed: int = Field(..., description="Completed tasks with this priority")
    percentage: float = Field(..., description="Completed share in percent (0 when there are none)")


# PUBLIC_INTERFACE
class ProgressStats(BaseModel):
    """
    Aggregate progress over a list of tasks.

    Deadline counters only consider tasks that are not completed and have a
    dueDate.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    high_priority_tasks: int = Field(..., description="High priority tasks still pending")
    overdue_tasks: int
    tasks_due_today: int
    tasks_due_this_week: int
    completion_rate: float = Field(..., description="Completed share in percent")
    by_priority: Dict[Priority, PriorityProgress]
    message: str = Field(..., description="Encouragement line for the current progress")


def _percent(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# PUBLIC_INTERFACE
def motivational_message(stats: ProgressStats) -> str:
    """Pick the encouragement line for `stats`; earlier rules win."""
    completion_rate = stats.completion_rate
    if stats.total_tasks > 0 and completion_rate == 100:
        return "All tasks completed! You're amazing!"
    if completion_rate >= 80:
        return "Great progress! Keep it up!"
    if completion_rate >= 50:
        return "You're halfway there!"
    if stats.overdue_tasks > 0:
        return "Focus on overdue tasks first!"
    if stats.tasks_due_today > 0:
        return "You have tasks due today!"
    return "Every step counts. Keep going!"


# PUBLIC_INTERFACE
def compute_progress(tasks: Iterable[TaskOut], now: Optional[datetime] = None) -> ProgressStats:
    """
    Compute ProgressStats for `tasks` as of `now` (defaults to the current
    UTC time). "Today" is the calendar date of `now` in its own timezone.
    """
    now = _aware(now or datetime.now(timezone.utc))
    week_from_now = now + timedelta(days=7)
    items = list(tasks)

    completed = [t for t in items if t.completed]
    pending_with_due = [
        (t, _aware(t.due_date).astimezone(now.tzinfo))
        for t in items
        if not t.completed and t.due_date is not None
    ]

    by_priority: Dict[Priority, PriorityProgress] = {}
    for priority in (Priority.high, Priority.medium, Priority.low):
        total = sum(1 for t in items if t.priority == priority)
        done = sum(1 for t in completed if t.priority == priority)
        by_priority[priority] = PriorityProgress(total=total, completed=done, percentage=_percent(done, total))

    overdue = sum(1 for _, due in pending_with_due if due < now)
    due_today = sum(1 for _, due in pending_with_due if due.date() == now.date())
    due_this_week = sum(1 for _, due in pending_with_due if now <= due <= week_from_now)
    rate = _percent(len(completed), len(items))

    stats = ProgressStats(
        total_tasks=len(items),
        completed_tasks=len(completed),
        pending_tasks=len(items) - len(completed),
        high_priority_tasks=sum(1 for t in items if t.priority == Priority.high and not t.completed),
        overdue_tasks=overdue,
        tasks_due_today=due_today,
        tasks_due_this_week=due_this_week,
        completion_rate=rate,
        by_priority=by_priority,
        message="",
    )
    return stats.model_copy(update={"message": motivational_message(stats)})
