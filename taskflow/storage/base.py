"""Storage interface shared by the relational and in-memory backends."""
from __future__ import annotations

import abc
from datetime import datetime
from typing import Any

from ..schemas import TaskRecord, UserRecord


class Storage(abc.ABC):
    """
    Raw persistence for users and tasks.

    Implementations do no hashing and no validation; that lives in
    CredentialStore and TaskRepository. Every task method takes the owner's
    id and must filter on it.
    """

    async def create_schema(self) -> None:
        """Prepare the backing store. No-op unless the backend needs it."""

    async def close(self) -> None:
        """Release connections held by the backend."""

    # -- users -------------------------------------------------------------

    @abc.abstractmethod
    async def get_user(self, user_id: int) -> UserRecord | None: ...

    @abc.abstractmethod
    async def get_user_by_username(self, username: str) -> UserRecord | None: ...

    @abc.abstractmethod
    async def get_user_by_email(self, email: str) -> UserRecord | None: ...

    @abc.abstractmethod
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
        """Persist a user. Raises DuplicateIdentity on a uniqueness clash."""

    # -- tasks -------------------------------------------------------------

    @abc.abstractmethod
    async def list_tasks(self, user_id: int) -> list[TaskRecord]:
        """All of the user's tasks, oldest first."""

    @abc.abstractmethod
    async def get_task(self, task_id: int, user_id: int) -> TaskRecord | None: ...

    @abc.abstractmethod
    async def insert_task(self, user_id: int, fields: dict[str, Any], now: datetime) -> TaskRecord: ...

    @abc.abstractmethod
    async def update_task(
        self, task_id: int, user_id: int, fields: dict[str, Any], now: datetime
    ) -> TaskRecord | None: ...

    @abc.abstractmethod
    async def delete_task(self, task_id: int, user_id: int) -> bool: ...
