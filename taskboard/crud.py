import logging
from datetime import datetime
from typing import Iterable, List, Union

from sqlalchemy.orm import Session

from . import errors, models, schemas
from .config import get_settings

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now()


def _unique(names: Iterable[str]) -> List[str]:
    out: List[str] = []
    for name in names:
        if name and name not in out:
            out.append(name)
    return out


def _build_subtasks(items: List[schemas.SubtaskIn], now: datetime) -> List[dict]:
    """Give every subtask an id unique within its task, keeping valid ids as sent."""
    next_id = max((s.id for s in items if s.id is not None), default=0) + 1
    seen = set()
    out = []
    for item in items:
        subtask_id = item.id
        if subtask_id is None or subtask_id in seen:
            subtask_id = next_id
            next_id += 1
        seen.add(subtask_id)
        subtask = schemas.Subtask(
            id=subtask_id,
            title=item.title,
            completed=item.completed,
            created_at=item.created_at or now,
        )
        out.append(subtask.model_dump(mode="json"))
    return out


def _dump_reminders(reminders: List[schemas.Reminder]) -> List[dict]:
    return [r.model_dump(mode="json") for r in reminders]


def get_task(db: Session, task_id: int) -> models.Task:
    task = db.query(models.Task).filter(models.Task.id == task_id).first()
    if task is None:
        raise errors.NotFound("Task not found")
    return task


def get_tasks(db: Session) -> List[models.Task]:
    return db.query(models.Task).order_by(models.Task.id).all()


def get_tasks_by_project(db: Session, project: str) -> List[models.Task]:
    return db.query(models.Task).filter(models.Task.project == project).order_by(models.Task.id).all()


def get_tasks_by_label(db: Session, label: str) -> List[models.Task]:
    return [t for t in get_tasks(db) if label in (t.labels or [])]


def get_tasks_by_priority(db: Session, priority: str) -> List[models.Task]:
    if priority not in schemas.PRIORITIES:
        raise errors.ValidationError(f"Invalid priority: {priority}")
    return db.query(models.Task).filter(models.Task.priority == priority).order_by(models.Task.id).all()


def create_task(db: Session, task_in: Union[schemas.TaskCreate, dict]) -> models.Task:
    task_in = schemas.parse(schemas.TaskCreate, task_in)
    now = _now()
    data = task_in.model_dump(exclude={"subtasks", "reminders"})
    task = models.Task(
        **data,
        completed=False,
        created_at=now,
        updated_at=now,
        subtasks=_build_subtasks(task_in.subtasks, now),
        reminders=_dump_reminders(task_in.reminders),
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("Created task %s %r", task.id, task.title)
    return task


def update_task(db: Session, task_id: int, task_in: Union[schemas.TaskUpdate, dict]) -> models.Task:
    db_task = get_task(db, task_id)
    task_in = schemas.parse(schemas.TaskUpdate, schemas.with_stored_due_date(task_in, db_task.due_date))
    now = _now()

    data = task_in.model_dump(exclude_unset=True, exclude={"subtasks", "reminders"})
    for field, value in data.items():
        setattr(db_task, field, value)
    if "subtasks" in task_in.model_fields_set:
        db_task.subtasks = _build_subtasks(task_in.subtasks, now)
    if "reminders" in task_in.model_fields_set:
        db_task.reminders = _dump_reminders(task_in.reminders)
    db_task.updated_at = max(now, db_task.updated_at or now)

    db.commit()
    db.refresh(db_task)
    logger.debug("Updated task %s fields=%s", task_id, sorted(task_in.model_fields_set))
    return db_task


def delete_task(db: Session, task_id: int) -> schemas.TaskOut:
    db_task = get_task(db, task_id)
    removed = schemas.TaskOut.model_validate(db_task)
    db.delete(db_task)
    db.commit()
    logger.info("Deleted task %s", task_id)
    return removed


def set_completed(db: Session, task_id: int, completed: bool = True) -> models.Task:
    return update_task(db, task_id, schemas.TaskUpdate(completed=completed))


def add_subtask(db: Session, task_id: int, subtask_in: Union[schemas.SubtaskCreate, dict]) -> models.Task:
    subtask_in = schemas.parse(schemas.SubtaskCreate, subtask_in)
    db_task = get_task(db, task_id)
    now = _now()

    existing = list(db_task.subtasks or [])
    subtask = schemas.Subtask(
        id=max((s["id"] for s in existing), default=0) + 1,
        title=subtask_in.title,
        completed=False,
        created_at=now,
    )
    db_task.subtasks = existing + [subtask.model_dump(mode="json")]
    db_task.updated_at = max(now, db_task.updated_at or now)

    db.commit()
    db.refresh(db_task)
    return db_task


def list_projects(db: Session) -> List[str]:
    registered = [p.name for p in db.query(models.Project).order_by(models.Project.id)]
    used = [t.project for t in get_tasks(db)]
    return _unique([*get_settings().default_projects, *registered, *used])


def create_project(db: Session, name_in: Union[schemas.NameIn, dict, str]) -> str:
    name = _name(name_in)
    if db.query(models.Project).filter(models.Project.name == name).first() is None:
        db.add(models.Project(name=name))
        db.commit()
        logger.info("Created project %r", name)
    return name


def list_labels(db: Session) -> List[str]:
    registered = [lb.name for lb in db.query(models.Label).order_by(models.Label.id)]
    used = [label for t in get_tasks(db) for label in (t.labels or [])]
    return _unique([*get_settings().default_labels, *registered, *used])


def create_label(db: Session, name_in: Union[schemas.NameIn, dict, str]) -> str:
    name = _name(name_in)
    if db.query(models.Label).filter(models.Label.name == name).first() is None:
        db.add(models.Label(name=name))
        db.commit()
        logger.info("Created label %r", name)
    return name


def _name(name_in: Union[schemas.NameIn, dict, str, None]) -> str:
    if isinstance(name_in, str) or name_in is None:
        name_in = {"name": name_in or ""}
    return schemas.parse(schemas.NameIn, name_in).name
