"""
Client side of the task board.

TaskClient talks to the HTTP API. TaskBoard holds the application state a
front end renders from (tasks, projects, labels, current view and sort) and
drives the task lifecycle: completing a recurring task submits its next
occurrence, and reminders are re-armed whenever a task changes.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional

import httpx

from . import errors, recurrence, schemas, views
from .config import get_settings
from .reminders import ReminderNotice, ReminderScheduler

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP error! status: {response.status_code}"


class TaskClient:
    """HTTP client for the task API."""

    def __init__(
        self,
        http: Optional[httpx.Client] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self._owns_http = http is None
        self._http = http or httpx.Client(
            base_url=base_url or settings.api_url,
            timeout=timeout or settings.http_timeout,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "TaskClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def request(self, method: str, path: str, *, json: Any = None, params: Optional[dict] = None) -> Any:
        try:
            response = self._http.request(method, path, json=json, params=params)
        except httpx.TransportError as exc:
            raise errors.TransientIOError(f"Cannot reach task service: {exc}") from exc

        if response.is_success:
            return response.json()

        message = _error_message(response)
        if response.status_code == 404:
            raise errors.NotFound(message)
        if response.status_code in (400, 422):
            raise errors.ValidationError(message)
        if response.status_code in (502, 503, 504):
            raise errors.TransientIOError(message)
        raise errors.TaskError(message)

    # ---- Tasks ----

    def list_tasks(self, view: Optional[str] = None, sort: Optional[str] = None) -> List[schemas.TaskOut]:
        params = {k: v for k, v in (("view", view), ("sort", sort)) if v}
        return [schemas.TaskOut.model_validate(t) for t in self.request("GET", "/api/tasks", params=params)]

    def search_tasks(self, term: str) -> List[schemas.TaskOut]:
        data = self.request("GET", "/api/tasks/search", params={"q": term})
        return [schemas.TaskOut.model_validate(t) for t in data]

    def filter_tasks(self, filter_type: str, value: str) -> List[schemas.TaskOut]:
        data = self.request("GET", f"/api/tasks/filter/{filter_type}/{value}")
        return [schemas.TaskOut.model_validate(t) for t in data]

    def get_task(self, task_id: int) -> schemas.TaskOut:
        return schemas.TaskOut.model_validate(self.request("GET", f"/api/tasks/{task_id}"))

    def create_task(self, fields) -> schemas.TaskOut:
        payload = schemas.parse(schemas.TaskCreate, fields).model_dump(mode="json", by_alias=True)
        return schemas.TaskOut.model_validate(self.request("POST", "/api/tasks", json=payload))

    def update_task(self, task_id: int, fields) -> schemas.TaskOut:
        payload = schemas.parse(schemas.TaskUpdate, fields).model_dump(
            mode="json", by_alias=True, exclude_unset=True
        )
        return schemas.TaskOut.model_validate(self.request("PUT", f"/api/tasks/{task_id}", json=payload))

    def delete_task(self, task_id: int) -> str:
        return self.request("DELETE", f"/api/tasks/{task_id}")["message"]

    def set_completed(self, task_id: int, completed: bool = True) -> schemas.TaskOut:
        data = self.request("PATCH", f"/api/tasks/{task_id}/complete", json={"completed": completed})
        return schemas.TaskOut.model_validate(data)

    def add_subtask(self, task_id: int, title: str) -> schemas.TaskOut:
        data = self.request("POST", f"/api/tasks/{task_id}/subtasks", json={"title": title})
        return schemas.TaskOut.model_validate(data)

    # ---- Projects / labels ----

    def list_projects(self) -> List[str]:
        return list(self.request("GET", "/api/projects"))

    def create_project(self, name: str) -> str:
        return self.request("POST", "/api/projects", json={"name": name})["name"]

    def list_labels(self) -> List[str]:
        return list(self.request("GET", "/api/labels"))

    def create_label(self, name: str) -> str:
        return self.request("POST", "/api/labels", json={"name": name})["name"]


@dataclass
class BoardState:
    tasks: List[schemas.TaskOut] = field(default_factory=list)
    projects: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)
    view: str = "all"
    sort: str = "dueDate"


def _log_notification(message: str, level: str) -> None:
    logger.info("[%s] %s", level, message)


class TaskBoard:
    """
    Application state plus the user actions that change it.

    Every action performs one API request. Failures are logged and reported
    through notify(message, level) instead of raised; nothing is retried.
    """

    def __init__(
        self,
        client: TaskClient,
        *,
        notify: Optional[Callable[[str, str], None]] = None,
        clock: Callable[[], datetime] = datetime.now,
        timer_factory=threading.Timer,
    ):
        self.client = client
        self.state = BoardState()
        self._notify = notify or _log_notification
        self._clock = clock
        self.reminders = ReminderScheduler(
            self._show_reminder,
            is_active=self._is_open,
            clock=clock,
            timer_factory=timer_factory,
        )

    def _attempt(self, failure: str, call: Callable, *args):
        try:
            return call(*args)
        except errors.TaskError as exc:
            logger.error("%s: %s", failure, exc.message)
            self._notify(failure, "error")
            return None

    def _find(self, task_id: int) -> Optional[schemas.TaskOut]:
        return next((t for t in self.state.tasks if t.id == task_id), None)

    def _store(self, task: schemas.TaskOut) -> None:
        for i, existing in enumerate(self.state.tasks):
            if existing.id == task.id:
                self.state.tasks[i] = task
                break
        else:
            self.state.tasks.append(task)
        if task.project not in self.state.projects:
            self.state.projects.append(task.project)
        self.state.labels.extend(label for label in task.labels if label not in self.state.labels)
        self.reminders.schedule(task)

    def _is_open(self, task_id: int) -> bool:
        task = self._find(task_id)
        return task is not None and not task.completed

    def _show_reminder(self, notice: ReminderNotice) -> None:
        self._notify(f"{notice.message}. {notice.body}", "reminder")

    # ---- Loading / derived views ----

    def load(self) -> bool:
        tasks = self._attempt("Failed to load tasks", self.client.list_tasks)
        if tasks is None:
            return False
        self.reminders.cancel_all()
        self.state.tasks = list(tasks)
        self.state.projects = self._attempt("Failed to load projects", self.client.list_projects) or []
        self.state.labels = self._attempt("Failed to load labels", self.client.list_labels) or []
        for task in self.state.tasks:
            self.reminders.schedule(task)
        return True

    def visible_tasks(self) -> List[schemas.TaskOut]:
        today = self._clock().date()
        return views.sort_tasks(views.filter_by_view(self.state.tasks, self.state.view, today), self.state.sort)

    def set_view(self, view: str) -> List[schemas.TaskOut]:
        self.state.view = view
        return self.visible_tasks()

    def set_sort(self, key: str) -> List[schemas.TaskOut]:
        self.state.sort = key
        return self.visible_tasks()

    def search(self, term: str) -> List[schemas.TaskOut]:
        return views.search_tasks(self.state.tasks, term)

    # ---- Task actions ----

    def add_task(self, fields) -> Optional[schemas.TaskOut]:
        task = self._attempt("Failed to save task", self.client.create_task, fields)
        if task is not None:
            self._store(task)
            self._notify("Task added successfully", "success")
        return task

    def edit_task(self, task_id: int, fields) -> Optional[schemas.TaskOut]:
        task = self._attempt("Failed to save task", self.client.update_task, task_id, fields)
        if task is not None:
            self._store(task)
            self._notify("Task updated successfully", "success")
        return task

    def remove_task(self, task_id: int) -> bool:
        if self._attempt("Failed to delete task", self.client.delete_task, task_id) is None:
            return False
        self.state.tasks = [t for t in self.state.tasks if t.id != task_id]
        self.reminders.cancel(task_id)
        self._notify("Task deleted successfully", "info")
        return True

    def add_subtask(self, task_id: int, title: str) -> Optional[schemas.TaskOut]:
        task = self._attempt("Failed to add subtask", self.client.add_subtask, task_id, title)
        if task is not None:
            self._store(task)
        return task

    def toggle_complete(self, task_id: int, completed: bool = True) -> Optional[schemas.TaskOut]:
        previous = self._find(task_id)
        task = self._attempt("Failed to update task", self.client.set_completed, task_id, completed)
        if task is None:
            return None
        self._store(task)

        if completed:
            self._notify("Task completed", "success")
            was_open = previous is None or not previous.completed
            if task.is_recurring and was_open:
                self._create_next_occurrence(task)
        return task

    def _create_next_occurrence(self, completed_task: schemas.TaskOut) -> Optional[schemas.TaskOut]:
        payload = recurrence.build_next_task(completed_task)
        if payload is None:
            return None
        task = self._attempt("Failed to create next recurring task", self.client.create_task, payload)
        if task is not None:
            self._store(task)
            self._notify("Created next recurring task", "info")
        return task

    # ---- Projects / labels ----

    def create_project(self, name: str) -> Optional[str]:
        created = self._attempt("Failed to add project", self.client.create_project, name)
        if created is not None and created not in self.state.projects:
            self.state.projects.append(created)
            self._notify(f'Project "{created}" added', "success")
        return created

    def create_label(self, name: str) -> Optional[str]:
        created = self._attempt("Failed to add label", self.client.create_label, name)
        if created is not None and created not in self.state.labels:
            self.state.labels.append(created)
            self._notify(f'Label "{created}" added', "success")
        return created

    def close(self) -> None:
        self.reminders.cancel_all()
