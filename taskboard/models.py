from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON
from datetime import datetime
from .database import Base

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    priority = Column(String(10), nullable=False, default="medium")
    project = Column(String(255), nullable=False, default="default", index=True)
    section = Column(String(255), nullable=True)
    # Embedded documents: reassign, never mutate in place.
    labels = Column(JSON, nullable=False, default=list)
    subtasks = Column(JSON, nullable=False, default=list)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_pattern = Column(String(100), nullable=True)
    reminders = Column(JSON, nullable=False, default=list)


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)


class Label(Base):
    __tablename__ = "labels"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
