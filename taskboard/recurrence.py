"""Next-occurrence computation for recurring tasks."""

import calendar
import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from . import schemas

logger = logging.getLogger(__name__)

# "Every 3 days", "every 2 Weeks", "Every 1 month"
_EVERY_RE = re.compile(r"^every\s+(\d+)\s+([a-z]+)$", re.IGNORECASE)


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    index = value.month - 1 + months
    year = value.year + index // 12
    month = index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_due_date(previous: Optional[datetime], pattern: Optional[str]) -> Optional[datetime]:
    """
    Return the due date following previous for the given pattern.

    Returns None when there is no previous date or the pattern is not one of
    daily, weekly, monthly or "Every N day(s)/week(s)/month(s)".
    """
    if previous is None or not pattern:
        return None

    pattern = pattern.strip()
    fixed = pattern.lower()
    if fixed == "daily":
        return previous + timedelta(days=1)
    if fixed == "weekly":
        return previous + timedelta(days=7)
    if fixed == "monthly":
        return add_months(previous, 1)

    m = _EVERY_RE.match(pattern)
    if not m:
        return None
    count = int(m.group(1))
    unit = m.group(2).lower()
    if count < 1:
        return None
    if unit.startswith("day"):
        return previous + timedelta(days=count)
    if unit.startswith("week"):
        return previous + timedelta(weeks=count)
    if unit.startswith("month"):
        return add_months(previous, count)
    return None


def build_next_task(task: schemas.TaskOut) -> Optional[schemas.TaskCreate]:
    """
    Create payload for the occurrence after a completed recurring task.

    The completed task is left as it is; the new one is an independent
    record with the same content, fresh subtasks and the next due date.
    """
    if not task.is_recurring:
        return None
    due = next_due_date(task.due_date, task.recurring_pattern)
    if due is None:
        logger.debug("Task %s: no next date for pattern %r", task.id, task.recurring_pattern)
        return None

    return schemas.TaskCreate(
        title=task.title,
        description=task.description,
        due_date=due,
        priority=task.priority,
        project=task.project,
        section=task.section,
        labels=list(task.labels),
        is_recurring=True,
        recurring_pattern=task.recurring_pattern,
        subtasks=[schemas.SubtaskIn(title=s.title, completed=False) for s in task.subtasks],
        reminders=[r.model_copy() for r in task.reminders],
    )
