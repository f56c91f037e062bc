"""
Reminder scheduler.

Client-local one-shot timers that fire a notification at an offset before a
task's due date:
- timers are keyed by task id; scheduling a task cancels its previous timers,
- only reminders whose fire time is still in the future are armed,
- on expiry, the notification is emitted only if the task is still open.

Nothing is persisted: timers live as long as the owning process.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from . import schemas

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReminderNotice:
    task_id: int
    title: str
    reminder: schemas.Reminder
    fire_at: datetime

    @property
    def message(self) -> str:
        return f"Reminder: {self.title}"

    @property
    def body(self) -> str:
        return f"Due {self.reminder.value} {self.reminder.unit} from now"


def fire_time(due: datetime, reminder: schemas.Reminder) -> datetime:
    return due - timedelta(**{reminder.unit: reminder.value})


class ReminderScheduler:
    """
    Registry of armed reminder timers, one entry per task id.

    notify receives a ReminderNotice when a timer fires. is_active, when
    given, is asked at fire time whether the task is still open. Completed
    tasks never arm timers.

    is_active runs on the timer thread and reads the caller's state without
    taking this scheduler's lock.
    """

    def __init__(
        self,
        notify: Callable[[ReminderNotice], None],
        *,
        is_active: Optional[Callable[[int], bool]] = None,
        clock: Callable[[], datetime] = datetime.now,
        timer_factory=threading.Timer,
    ) -> None:
        self._notify = notify
        self._is_active = is_active
        self._clock = clock
        self._timer_factory = timer_factory
        self._timers: Dict[int, List[Tuple[ReminderNotice, object]]] = {}
        self._lock = threading.Lock()

    def schedule(self, task) -> int:
        """(Re)arm the reminders of task. Returns how many timers were armed."""
        armed: List[Tuple[ReminderNotice, object]] = []

        if not task.completed and task.due_date is not None:
            now = self._clock()
            for raw in task.reminders or []:
                reminder = schemas.Reminder.model_validate(raw)
                try:
                    at = fire_time(task.due_date, reminder)
                except OverflowError:
                    logger.warning("Task %s: reminder %s %s falls outside the calendar", task.id, reminder.value, reminder.unit)
                    continue
                if at <= now:
                    logger.debug("Task %s: reminder at %s already passed", task.id, at)
                    continue
                notice = ReminderNotice(task_id=task.id, title=task.title, reminder=reminder, fire_at=at)
                timer = self._timer_factory(
                    (at - now).total_seconds(),
                    self._fire,
                    args=(notice,),
                )
                timer.daemon = True
                armed.append((notice, timer))

        with self._lock:
            stale = self._timers.pop(task.id, [])
            if armed:
                self._timers[task.id] = armed
            for _, timer in stale:
                timer.cancel()
            for _, timer in armed:
                timer.start()

        if armed:
            logger.info("Task %s: armed %d reminder(s)", task.id, len(armed))
        return len(armed)

    def cancel(self, task_id: int) -> int:
        with self._lock:
            stale = self._timers.pop(task_id, [])
            for _, timer in stale:
                timer.cancel()
        return len(stale)

    def cancel_all(self) -> None:
        with self._lock:
            for entries in self._timers.values():
                for _, timer in entries:
                    timer.cancel()
            self._timers.clear()

    def armed(self, task_id: int) -> List[ReminderNotice]:
        with self._lock:
            return [notice for notice, _ in self._timers.get(task_id, [])]

    def _fire(self, notice: ReminderNotice) -> None:
        with self._lock:
            entries = self._timers.get(notice.task_id, [])
            remaining = [e for e in entries if e[0] is not notice]
            if len(remaining) == len(entries):
                # Cancelled or re-armed after the timer started firing.
                return
            if remaining:
                self._timers[notice.task_id] = remaining
            else:
                self._timers.pop(notice.task_id, None)

        if self._is_active is not None and not self._is_active(notice.task_id):
            logger.debug("Task %s: skipping reminder, task no longer open", notice.task_id)
            return

        try:
            self._notify(notice)
        except Exception:
            # Timer threads have no caller to propagate to.
            logger.exception("Task %s: reminder notification failed", notice.task_id)
