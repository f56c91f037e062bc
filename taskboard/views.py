"""
View filtering, sorting and grouping.

Pure functions over any task-like objects exposing the Task attributes
(ORM rows on the server, TaskOut models on the client). Inputs are never
mutated; every function returns a new list or dict.
"""

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence

PRIORITY_ORDER = {"urgent": 0, "high": 1, "medium": 2, "low": 3}

SORT_KEYS = ("dueDate", "priority", "createdAt", "title")

NO_DUE_DATE = "No Due Date"
NO_SECTION = "No Section"


def _due_day(task) -> Optional[date]:
    return task.due_date.date() if task.due_date is not None else None


def filter_by_view(tasks: Sequence, view: Optional[str], today: Optional[date] = None) -> List:
    """
    Select the tasks belonging to a named view.

    Views: all, today, upcoming (the 7 days starting today), important,
    completed, project:<name>, label:<name>. Project and label names match
    case-insensitively. Unknown views return every task.
    """
    today = today or date.today()
    view = view or "all"

    if view == "today":
        return [t for t in tasks if _due_day(t) == today]
    if view == "upcoming":
        week_end = today + timedelta(days=7)
        return [t for t in tasks if _due_day(t) is not None and today <= _due_day(t) < week_end]
    if view == "important":
        return [t for t in tasks if t.priority in ("high", "urgent")]
    if view == "completed":
        return [t for t in tasks if t.completed]
    if view.startswith("project:"):
        name = view.split(":", 1)[1].casefold()
        return [t for t in tasks if (t.project or "").casefold() == name]
    if view.startswith("label:"):
        name = view.split(":", 1)[1].casefold()
        return [t for t in tasks if any(label.casefold() == name for label in (t.labels or []))]
    return list(tasks)


def sort_tasks(tasks: Sequence, key: Optional[str]) -> List:
    """Stable sort by dueDate, priority, createdAt or title; unknown keys keep order."""
    if key == "dueDate":
        return sorted(tasks, key=lambda t: (t.due_date is None, t.due_date or datetime.min))
    if key == "priority":
        return sorted(tasks, key=lambda t: PRIORITY_ORDER.get(t.priority, len(PRIORITY_ORDER)))
    if key == "createdAt":
        return sorted(tasks, key=lambda t: t.created_at, reverse=True)
    if key == "title":
        return sorted(tasks, key=lambda t: (t.title.casefold(), t.title))
    return list(tasks)


def search_tasks(tasks: Sequence, term: Optional[str]) -> List:
    term = (term or "").strip().casefold()
    if not term:
        return list(tasks)

    def matches(task) -> bool:
        return (
            term in task.title.casefold()
            or term in (task.description or "").casefold()
            or any(term in label.casefold() for label in (task.labels or []))
            or term in (task.project or "").casefold()
        )

    return [t for t in tasks if matches(t)]


def date_heading(day: date, today: Optional[date] = None) -> str:
    today = today or date.today()
    if day == today:
        return "Today"
    if day == today + timedelta(days=1):
        return "Tomorrow"
    return day.strftime("%a, %b %d, %Y")


def group_by_date(tasks: Sequence, today: Optional[date] = None) -> Dict[str, List]:
    """Group already-sorted tasks under date headings, in first-seen order."""
    groups: Dict[str, List] = {}
    for task in tasks:
        day = _due_day(task)
        heading = NO_DUE_DATE if day is None else date_heading(day, today)
        groups.setdefault(heading, []).append(task)
    return groups


def group_by_section(tasks: Sequence) -> Dict[str, List]:
    groups: Dict[str, List] = {NO_SECTION: []}
    for task in tasks:
        groups.setdefault(task.section or NO_SECTION, []).append(task)
    if not groups[NO_SECTION]:
        del groups[NO_SECTION]
    return groups
