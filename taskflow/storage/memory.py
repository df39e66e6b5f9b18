"""Process-local storage backend, useful for demos and tests."""
from __future__ import annotations

import itertools
from datetime import datetime
from typing import Any

from ..errors import DuplicateIdentity
from ..schemas import TaskRecord, UserRecord
from .base import Storage


class MemoryStorage(Storage):
    """Keeps users and tasks in dicts owned by this instance. Lost on restart."""

    def __init__(self) -> None:
        self._users: dict[int, UserRecord] = {}
        self._tasks: dict[int, TaskRecord] = {}
        self._user_ids = itertools.count(1)
        self._task_ids = itertools.count(1)

    async def get_user(self, user_id: int) -> UserRecord | None:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> UserRecord | None:
        return next((u for u in self._users.values() if u.username == username), None)

    async def get_user_by_email(self, email: str) -> UserRecord | None:
        return next((u for u in self._users.values() if u.email == email), None)

    async def insert_user(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        first_name: str | None,
        last_name: str | None,
        now: datetime,
    ) -> UserRecord:
        # Same guarantee the unique constraints give the relational backend.
        for existing in self._users.values():
            if existing.username == username:
                raise DuplicateIdentity("Username already exists")
            if existing.email == email:
                raise DuplicateIdentity("Email already exists")

        user = UserRecord(
            id=next(self._user_ids),
            username=username,
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            created_at=now,
            updated_at=now,
        )
        self._users[user.id] = user
        return user

    async def list_tasks(self, user_id: int) -> list[TaskRecord]:
        owned = [t for t in self._tasks.values() if t.user_id == user_id]
        return sorted(owned, key=lambda t: (t.created_at, t.id))

    async def get_task(self, task_id: int, user_id: int) -> TaskRecord | None:
        task = self._tasks.get(task_id)
        if task is None or task.user_id != user_id:
            return None
        return task

    async def insert_task(self, user_id: int, fields: dict[str, Any], now: datetime) -> TaskRecord:
        task = TaskRecord(
            **fields,
            id=next(self._task_ids),
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        self._tasks[task.id] = task
        return task

    async def update_task(
        self, task_id: int, user_id: int, fields: dict[str, Any], now: datetime
    ) -> TaskRecord | None:
        task = await self.get_task(task_id, user_id)
        if task is None:
            return None
        updated = task.model_copy(update={**fields, "updated_at": now})
        self._tasks[task_id] = updated
        return updated

    async def delete_task(self, task_id: int, user_id: int) -> bool:
        if await self.get_task(task_id, user_id) is None:
            return False
        del self._tasks[task_id]
        return True
