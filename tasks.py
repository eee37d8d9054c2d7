"""Task operations, scoped to the owning user.

Every function takes an open session and the caller's user id. Queries are
always built from ``owned_tasks`` so owner scoping cannot be left out, and
single-task access matches id AND owner in one predicate: a task that does
not exist and a task that belongs to someone else both raise ``NotFound``.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import NotFound, StoreError, ValidationError
from models import Task, TaskStatus
import schemas

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "due_date", "status", "category")
LIKE_ESCAPE = "\\"


@contextmanager
def store_errors(db: Session):
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Task store operation failed")
        raise StoreError() from exc


def parse_status(value: str) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise ValidationError(f"Status must be one of: {', '.join(s.value for s in TaskStatus)}") from None


def parse_day(value: str) -> date:
    """Calendar day of a ``YYYY-MM-DD`` string or ISO timestamp, in server local time."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("dueDate must be a date like YYYY-MM-DD") from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.date()


def escape_like(text: str) -> str:
    for char in (LIKE_ESCAPE, "%", "_"):
        text = text.replace(char, LIKE_ESCAPE + char)
    return text


@dataclass(frozen=True)
class TaskFilter:
    status: Optional[TaskStatus] = None
    category: Optional[str] = None
    due_on: Optional[date] = None

    @classmethod
    def from_params(cls, status: str = None, category: str = None, due_date: str = None) -> "TaskFilter":
        # empty values mean no constraint on that field
        return cls(
            status=parse_status(status) if status else None,
            category=category or None,
            due_on=parse_day(due_date) if due_date else None,
        )

    def apply(self, query):
        if self.status is not None:
            query = query.filter(Task.status == self.status)
        if self.category is not None:
            query = query.filter(Task.category == self.category)
        if self.due_on is not None:
            start = datetime.combine(self.due_on, time.min)
            end = datetime.combine(self.due_on, time.max)
            query = query.filter(Task.due_date >= start, Task.due_date <= end)
        return query


def owned_tasks(db: Session, user_id: int):
    return db.query(Task).filter(Task.user_id == user_id)


def _owned_task(db: Session, user_id: int, task_id: int) -> Task:
    task = owned_tasks(db, user_id).filter(Task.id == task_id).first()
    if task is None:
        logger.debug("Task %s not found for user %s", task_id, user_id)
        raise NotFound()
    return task


def create_task(db: Session, user_id: int, data: schemas.TaskCreate) -> Task:
    if not data.title or not data.category:
        raise ValidationError("Title and category are required")

    task = Task(
        title=data.title,
        description=data.description,
        due_date=data.due_date,
        category=data.category,
        status=TaskStatus.PENDING,
        user_id=user_id,
    )
    with store_errors(db):
        db.add(task)
        db.commit()
        db.refresh(task)
    logger.info("User %s created task %s", user_id, task.id)
    return task


def list_tasks(db: Session, user_id: int, task_filter: TaskFilter = TaskFilter()) -> List[Task]:
    with store_errors(db):
        query = task_filter.apply(owned_tasks(db, user_id))
        return query.order_by(Task.due_date.asc()).all()


def get_task(db: Session, user_id: int, task_id: int) -> Task:
    with store_errors(db):
        return _owned_task(db, user_id, task_id)


def update_task(db: Session, user_id: int, task_id: int, changes: schemas.TaskUpdate) -> Task:
    # Falsy values leave the stored field unchanged, so a field cannot be
    # cleared through this path. Read-modify-write: concurrent updates race.
    values = {field: getattr(changes, field) for field in UPDATABLE_FIELDS}
    if values["status"]:
        values["status"] = parse_status(values["status"])

    with store_errors(db):
        task = _owned_task(db, user_id, task_id)
        for field, value in values.items():
            if value:
                setattr(task, field, value)
        db.commit()
        db.refresh(task)
    return task


def delete_task(db: Session, user_id: int, task_id: int) -> None:
    with store_errors(db):
        task = _owned_task(db, user_id, task_id)
        db.delete(task)
        db.commit()
    logger.info("User %s deleted task %s", user_id, task_id)


def set_status(db: Session, user_id: int, task_id: int, status: TaskStatus) -> Task:
    """Atomically set the status of an owned task and return it.

    Ownership and mutation are one conditional UPDATE keyed on id and owner,
    so a non-owner's call never touches the row.
    """
    with store_errors(db):
        matched = (
            owned_tasks(db, user_id)
            .filter(Task.id == task_id)
            .update({Task.status: status}, synchronize_session=False)
        )
        db.commit()
        if not matched:
            logger.debug("Task %s not found for user %s", task_id, user_id)
            raise NotFound()
        task = _owned_task(db, user_id, task_id)
        # the session may hold the pre-update row from an earlier read
        db.refresh(task)
    logger.info("User %s marked task %s %s", user_id, task_id, status.value)
    return task


def tasks_by_category(db: Session, user_id: int, category: str) -> List[Task]:
    with store_errors(db):
        return owned_tasks(db, user_id).filter(Task.category == category).all()


def search_tasks(db: Session, user_id: int, q: Optional[str]) -> List[Task]:
    if not q:
        raise ValidationError('Search query "q" is required')

    # q is matched literally; LIKE wildcards in it are escaped
    pattern = f"%{escape_like(q)}%"
    with store_errors(db):
        return (
            owned_tasks(db, user_id)
            .filter(
                or_(
                    Task.title.ilike(pattern, escape=LIKE_ESCAPE),
                    Task.description.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
            .all()
        )
