from datetime import datetime
from typing import List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from . import errors

PRIORITIES = ("low", "medium", "high", "urgent")

Priority = Literal["low", "medium", "high", "urgent"]
ReminderUnit = Literal["minutes", "hours", "days"]

# Longest reminder offset per unit: one leap year.
REMINDER_LIMITS = {"minutes": 366 * 24 * 60, "hours": 366 * 24, "days": 366}

M = TypeVar("M", bound=BaseModel)

_datetime_adapter = TypeAdapter(datetime)


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive local time; convert aware values."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _parse_datetime(raw) -> datetime:
    try:
        return to_local_naive(_datetime_adapter.validate_python(raw))
    except SchemaError as exc:
        raise ValueError(f"Invalid date: {raw!r}") from exc


def _required_text(value: str, field: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{field} is required")
    return value


def _has_legacy_reminders(reminders) -> bool:
    if not isinstance(reminders, list):
        return False
    return any(isinstance(r, dict) and "date" in r for r in reminders)


def convert_legacy_reminders(data):
    """Turn {date, method} reminders into {value, unit} offsets before dueDate."""
    if not isinstance(data, dict):
        return data
    reminders = data.get("reminders")
    if not _has_legacy_reminders(reminders):
        return data

    due_raw = data.get("dueDate", data.get("due_date"))
    if due_raw is None:
        raise ValueError("Reminders given as a date need a dueDate")
    due = _parse_datetime(due_raw)

    converted = []
    for reminder in reminders:
        if isinstance(reminder, dict) and "date" in reminder:
            at = _parse_datetime(reminder["date"])
            if at > due:
                raise ValueError("Reminder date is after the due date")
            converted.append({"value": int((due - at).total_seconds() // 60), "unit": "minutes"})
        else:
            converted.append(reminder)
    return {**data, "reminders": converted}


def with_stored_due_date(data, due: Optional[datetime]):
    """Measure legacy reminders in a partial update against the stored dueDate."""
    if not isinstance(data, dict) or due is None or "dueDate" in data or "due_date" in data:
        return data
    if not _has_legacy_reminders(data.get("reminders")):
        return data
    return {**data, "dueDate": due}


def parse(schema: Type[M], data) -> M:
    """Validate plain data into schema, raising the domain ValidationError."""
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except SchemaError as exc:
        raise errors.ValidationError(errors.format_validation_errors(exc.errors())) from exc


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Reminder(CamelModel):
    value: int = Field(ge=0)
    unit: ReminderUnit

    @model_validator(mode="after")
    def _within_a_year(self):
        limit = REMINDER_LIMITS[self.unit]
        if self.value > limit:
            raise ValueError(f"Reminder offset cannot exceed {limit} {self.unit}")
        return self


class SubtaskIn(CamelModel):
    id: Optional[int] = None
    title: str = Field(max_length=255)
    completed: bool = False
    created_at: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return _required_text(v, "Title")


class SubtaskCreate(CamelModel):
    title: str = Field(max_length=255)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return _required_text(v, "Title")


class Subtask(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    completed: bool = False
    created_at: datetime


class TaskBase(CamelModel):
    title: str = Field(max_length=255)
    description: str = ""
    due_date: Optional[datetime] = None
    priority: Priority = "medium"
    project: str = "default"
    section: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    is_recurring: bool = False
    recurring_pattern: Optional[str] = None
    reminders: List[Reminder] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return _required_text(v, "Title")

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v):
        return "" if v is None else v

    @field_validator("project", mode="before")
    @classmethod
    def _project(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return "default"
        return v.strip() if isinstance(v, str) else v

    @field_validator("labels")
    @classmethod
    def _labels(cls, v: List[str]) -> List[str]:
        return _unique_labels(v)

    @field_validator("due_date")
    @classmethod
    def _due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)


def _unique_labels(labels: List[str]) -> List[str]:
    out: List[str] = []
    for label in labels:
        label = label.strip()
        if label and label not in out:
            out.append(label)
    return out


class TaskCreate(TaskBase):
    subtasks: List[SubtaskIn] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _legacy_reminders(cls, data):
        return convert_legacy_reminders(data)


class TaskUpdate(CamelModel):
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    project: Optional[str] = None
    section: Optional[str] = None
    labels: Optional[List[str]] = None
    subtasks: Optional[List[SubtaskIn]] = None
    is_recurring: Optional[bool] = None
    recurring_pattern: Optional[str] = None
    reminders: Optional[List[Reminder]] = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_reminders(cls, data):
        return convert_legacy_reminders(data)

    @field_validator("title")
    @classmethod
    def _title(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _required_text(v, "Title")

    @field_validator("project")
    @classmethod
    def _project(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or "default"

    @field_validator("labels")
    @classmethod
    def _labels(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _unique_labels(v)

    @field_validator("due_date")
    @classmethod
    def _due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)

    @model_validator(mode="after")
    def _no_null_required(self):
        # Only due_date, section and recurring_pattern may be cleared with null.
        for name in sorted(self.model_fields_set - {"due_date", "section", "recurring_pattern"}):
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


class CompletionUpdate(CamelModel):
    completed: bool = True


class TaskOut(TaskBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    completed: bool = False
    subtasks: List[Subtask] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class NameIn(BaseModel):
    name: str = Field(max_length=255)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _required_text(v, "Name")


class NameOut(BaseModel):
    name: str


class Message(BaseModel):
    message: str
