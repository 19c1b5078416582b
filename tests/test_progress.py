from datetime import datetime, timedelta, timezone

from src.taskapi.models import Priority
from src.taskapi.progress import compute_progress, motivational_message
from src.taskapi.schemas import TaskOut

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def task(n, completed=False, priority="medium", due=None) -> TaskOut:
    return TaskOut(
        id=f"t{n}",
        title=f"Task {n}",
        completed=completed,
        priority=priority,
        due_date=due,
        created_at=NOW - timedelta(days=30),
    )


def test_no_tasks():
    stats = compute_progress([], now=NOW)
    assert stats.total_tasks == 0
    assert stats.completion_rate == 0.0
    assert all(p.total == 0 and p.percentage == 0.0 for p in stats.by_priority.values())
    assert stats.message == "Every step counts. Keep going!"


def test_deadline_counters_skip_completed_and_undated():
    tasks = [
        task(1, due=NOW - timedelta(days=2)),  # overdue
        task(2, due=NOW + timedelta(hours=3)),  # due today and this week
        task(3, due=NOW + timedelta(days=6)),  # this week
        task(4, due=NOW + timedelta(days=8)),  # later
        task(5, completed=True, due=NOW - timedelta(days=1)),
        task(6),
    ]
    stats = compute_progress(tasks, now=NOW)
    assert stats.overdue_tasks == 1
    assert stats.tasks_due_today == 1
    assert stats.tasks_due_this_week == 2
    assert stats.pending_tasks == 5


def test_priority_breakdown():
    tasks = [
        task(1, priority="high", completed=True),
        task(2, priority="high"),
        task(3, priority="low", completed=True),
    ]
    stats = compute_progress(tasks, now=NOW)
    assert stats.high_priority_tasks == 1
    assert stats.by_priority[Priority.high].percentage == 50.0
    assert stats.by_priority[Priority.low].percentage == 100.0
    assert stats.by_priority[Priority.medium].total == 0
    assert round(stats.completion_rate, 1) == 66.7
    assert stats.message == "You're halfway there!"


def test_motivational_message_order():
    base = compute_progress([], now=NOW)

    def message(total, rate, overdue, due_today):
        return motivational_message(
            base.model_copy(
                update={
                    "total_tasks": total,
                    "completion_rate": rate,
                    "overdue_tasks": overdue,
                    "tasks_due_today": due_today,
                }
            )
        )

    assert message(3, 100.0, 1, 1) == "All tasks completed! You're amazing!"
    assert message(5, 80.0, 1, 0) == "Great progress! Keep it up!"
    assert message(4, 50.0, 1, 1) == "You're halfway there!"
    assert message(4, 20.0, 1, 1) == "Focus on overdue tasks first!"
    assert message(4, 20.0, 0, 1) == "You have tasks due today!"
    assert message(4, 20.0, 0, 0) == "Every step counts. Keep going!"


def test_message_follows_computed_counters():
    stats = compute_progress([task(1, due=NOW - timedelta(days=1)), task(2)], now=NOW)
    assert stats.message == motivational_message(stats) == "Focus on overdue tasks first!"


def test_today_is_the_calendar_date_of_now():
    # At UTC+14 noon UTC on the 10th is already the 11th
    tasks = [task(1, due=datetime(2025, 3, 11, 5, 0, tzinfo=timezone.utc))]
    assert compute_progress(tasks, now=NOW).tasks_due_today == 0

    kiritimati = NOW.astimezone(timezone(timedelta(hours=14)))
    local = compute_progress(tasks, now=kiritimati)
    assert local.tasks_due_today == 1
    assert local.overdue_tasks == 0
