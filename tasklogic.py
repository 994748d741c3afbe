"""Task business rules that do not touch the database.

Status derivation lives here so that every subtask operation goes
through the same rule.
"""

import math
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional

from security import as_utc

PENDING = "pending"
IN_PROGRESS = "inprogress"
COMPLETED = "completed"


def derive_status(subtasks: Iterable[dict]) -> str:
    subtasks = list(subtasks)
    done = sum(1 for st in subtasks if st.get("completed"))
    if done == 0:
        return PENDING
    if done == len(subtasks):
        return COMPLETED
    return IN_PROGRESS


def progress(subtasks: Optional[List[dict]]) -> int:
    """Percentage of completed subtasks, 0 when there are none."""
    if not subtasks:
        return 0
    done = sum(1 for st in subtasks if st.get("completed"))
    return _round_half_up(done / len(subtasks) * 100)


def new_subtask_id() -> str:
    return uuid.uuid4().hex[:12]


def add_subtask(subtasks: List[dict], title: str, due_date: Optional[str] = None, due_time: Optional[str] = None) -> List[dict]:
    subtask = {"id": new_subtask_id(), "title": title.strip(), "completed": False}
    if due_date:
        subtask["due_date"] = due_date
    if due_time:
        subtask["due_time"] = due_time
    return list(subtasks) + [subtask]


def toggle_subtask(subtasks: List[dict], subtask_id: str) -> Optional[List[dict]]:
    """Flip one subtask's completion. None when the id is unknown."""
    if not any(st.get("id") == subtask_id for st in subtasks):
        return None
    return [dict(st, completed=not st.get("completed", False)) if st.get("id") == subtask_id else st for st in subtasks]


def remove_subtask(subtasks: List[dict], subtask_id: str) -> Optional[List[dict]]:
    remaining = [st for st in subtasks if st.get("id") != subtask_id]
    if len(remaining) == len(subtasks):
        return None
    return remaining


# Insight statistics

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _activity_time(task: dict) -> Optional[datetime]:
    value = task.get("updated_at") or task.get("created_at")
    if not isinstance(value, datetime):
        return None
    return as_utc(value)


def _is_overdue(task: dict, today: date) -> bool:
    if task.get("status") == COMPLETED or not task.get("due_date"):
        return False
    try:
        return date.fromisoformat(task["due_date"]) < today
    except ValueError:
        return False


def most_active_time(hours: List[int]) -> str:
    if not hours:
        return "throughout the day"
    buckets = [
        ("in the mornings", sum(1 for h in hours if 6 <= h < 12)),
        ("in the afternoons", sum(1 for h in hours if 12 <= h < 17)),
        ("in the evenings", sum(1 for h in hours if 17 <= h < 21)),
        ("at night", sum(1 for h in hours if h >= 21 or h < 6)),
    ]
    # ties go to the earliest bucket
    label, _ = max(buckets, key=lambda b: b[1])
    return label


def compute_stats(tasks: List[dict], now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    today = now.date()
    midnight = datetime(today.year, today.month, today.day, tzinfo=timezone.utc)
    week_ago = now - timedelta(days=7)

    completed = [t for t in tasks if t.get("status") == COMPLETED]
    completed_times = [ts for ts in (_activity_time(t) for t in completed) if ts is not None]

    total = len(tasks)
    completed_count = len(completed)
    recent = sum(1 for ts in completed_times if ts >= week_ago)

    return {
        "total_tasks": total,
        "completed_count": completed_count,
        "today_completed": sum(1 for ts in completed_times if ts >= midnight),
        "pending_count": sum(1 for t in tasks if t.get("status") == PENDING),
        "in_progress_count": sum(1 for t in tasks if t.get("status") == IN_PROGRESS),
        "overdue_count": sum(1 for t in tasks if _is_overdue(t, today)),
        "completion_rate": _round_half_up(completed_count / total * 100) if total else 0,
        "most_active_time": most_active_time([ts.hour for ts in completed_times]),
        "avg_per_day": round(recent / 7, 1),
    }
