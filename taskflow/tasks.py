"""Task repository: owner-scoped CRUD and completion statistics."""
from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, get_args

from .errors import ValidationError
from .models.base import utcnow
from .schemas import TITLE_MAX_LENGTH, Priority, TaskRecord, TaskStats
from .storage import Storage

PRIORITY_VALUES = get_args(Priority)

UPDATABLE_FIELDS = frozenset({"title", "description", "priority", "due_date", "completed"})
NULLABLE_FIELDS = frozenset({"description", "due_date"})


def parse_due_date(value: str | None) -> datetime | None:
    """
    Interpret a stored due date as a naive UTC moment.

    ``2024-05-01`` means midnight UTC on that day; datetimes without an
    offset are taken as UTC. Anything unparseable yields None.
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    try:
        return datetime.combine(date.fromisoformat(text), time.min)
    except ValueError:
        pass
    try:
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def is_overdue(task: TaskRecord, now: datetime) -> bool:
    if task.completed:
        return False
    due = parse_due_date(task.due_date)
    return due is not None and due < now


def _check_title(title: Any) -> None:
    if not isinstance(title, str) or not title:
        raise ValidationError.for_field("title", "Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError.for_field(
            "title", f"Title must be less than {TITLE_MAX_LENGTH} characters"
        )


def _check_priority(priority: Any) -> None:
    if priority not in PRIORITY_VALUES:
        raise ValidationError.for_field(
            "priority", f"Priority must be one of: {', '.join(PRIORITY_VALUES)}"
        )


class TaskRepository:
    """All reads and writes take the caller's user id and never cross owners."""

    def __init__(self, storage: Storage, clock: Callable[[], datetime] = utcnow) -> None:
        self._storage = storage
        self._clock = clock

    async def list(self, user_id: int) -> list[TaskRecord]:
        return await self._storage.list_tasks(user_id)

    async def get(self, task_id: int, user_id: int) -> TaskRecord | None:
        return await self._storage.get_task(task_id, user_id)

    async def create(
        self,
        user_id: int,
        title: str,
        description: str | None = None,
        priority: str = "medium",
        due_date: str | None = None,
        completed: bool = False,
    ) -> TaskRecord:
        _check_title(title)
        _check_priority(priority)
        fields = {
            "title": title,
            "description": description,
            "priority": priority,
            "due_date": due_date,
            "completed": bool(completed),
        }
        return await self._storage.insert_task(user_id, fields, self._clock())

    async def update(self, task_id: int, user_id: int, fields: dict[str, Any]) -> TaskRecord | None:
        """Apply only the given fields. None when the task is absent or not the caller's."""

        unknown = sorted(set(fields) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                [{"field": name, "message": "Field cannot be updated"} for name in unknown]
            )
        for name, value in fields.items():
            if value is None and name not in NULLABLE_FIELDS:
                raise ValidationError.for_field(name, "May not be null")
        if "title" in fields:
            _check_title(fields["title"])
        if "priority" in fields:
            _check_priority(fields["priority"])

        current = await self._storage.get_task(task_id, user_id)
        if current is None:
            return None
        # updated_at must move forward even if the clock has not ticked.
        now = max(self._clock(), current.updated_at + timedelta(microseconds=1))
        return await self._storage.update_task(task_id, user_id, dict(fields), now)

    async def delete(self, task_id: int, user_id: int) -> bool:
        return await self._storage.delete_task(task_id, user_id)

    async def stats(self, user_id: int) -> TaskStats:
        tasks = await self._storage.list_tasks(user_id)
        now = self._clock()
        completed = sum(1 for t in tasks if t.completed)
        return TaskStats(
            total=len(tasks),
            completed=completed,
            pending=len(tasks) - completed,
            overdue=sum(1 for t in tasks if is_overdue(t, now)),
        )
