"""Relational storage backend built on async SQLAlchemy."""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from ..database import build_engine, build_sessionmaker
from ..errors import DuplicateIdentity, StoreFailure
from ..models import Base, Task, User
from ..schemas import TaskRecord, UserRecord
from .base import Storage

logger = logging.getLogger(__name__)

# sqlite3 refuses to bind integers outside 64 bits with a bare OverflowError.
_DRIVER_ERRORS = (SQLAlchemyError, OverflowError)


class DatabaseStorage(Storage):
    """Durable backend. Each call runs in its own AsyncSession."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessionmaker = build_sessionmaker(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "DatabaseStorage":
        return cls(build_engine(database_url))

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        """Open a session and translate driver errors into StoreFailure."""

        try:
            async with self._sessionmaker() as session:
                yield session
        except _DRIVER_ERRORS as exc:
            logger.exception("Datastore failure during %s", action)
            raise StoreFailure() from exc

    async def create_schema(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except _DRIVER_ERRORS as exc:
            logger.exception("Could not create database schema")
            raise StoreFailure() from exc

    async def drop_schema(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def close(self) -> None:
        await self._engine.dispose()

    # -- users -------------------------------------------------------------

    async def _one_user(self, action: str, *criteria) -> UserRecord | None:
        async with self._session(action) as session:
            result = await session.execute(select(User).where(*criteria))
            user = result.scalar_one_or_none()
        return None if user is None else UserRecord.model_validate(user)

    async def get_user(self, user_id: int) -> UserRecord | None:
        return await self._one_user("get_user", User.id == user_id)

    async def get_user_by_username(self, username: str) -> UserRecord | None:
        return await self._one_user("get_user_by_username", User.username == username)

    async def get_user_by_email(self, email: str) -> UserRecord | None:
        return await self._one_user("get_user_by_email", User.email == email)

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
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._sessionmaker() as session:
                session.add(user)
                await session.commit()
                await session.refresh(user)
        except IntegrityError as exc:
            # Lost the race between the existence check and the insert.
            logger.info("Unique constraint rejected registration of %r", username)
            raise DuplicateIdentity("Username or email already exists") from exc
        except _DRIVER_ERRORS as exc:
            logger.exception("Datastore failure during insert_user")
            raise StoreFailure() from exc
        return UserRecord.model_validate(user)

    # -- tasks -------------------------------------------------------------

    async def list_tasks(self, user_id: int) -> list[TaskRecord]:
        async with self._session("list_tasks") as session:
            result = await session.execute(
                select(Task).where(Task.user_id == user_id).order_by(Task.created_at, Task.id)
            )
            rows = list(result.scalars().all())
        return [TaskRecord.model_validate(row) for row in rows]

    async def get_task(self, task_id: int, user_id: int) -> TaskRecord | None:
        async with self._session("get_task") as session:
            result = await session.execute(
                select(Task).where(Task.id == task_id, Task.user_id == user_id)
            )
            task = result.scalar_one_or_none()
        return None if task is None else TaskRecord.model_validate(task)

    async def insert_task(self, user_id: int, fields: dict[str, Any], now: datetime) -> TaskRecord:
        task = Task(**fields, user_id=user_id, created_at=now, updated_at=now)
        async with self._session("insert_task") as session:
            session.add(task)
            await session.commit()
            await session.refresh(task)
        return TaskRecord.model_validate(task)

    async def update_task(
        self, task_id: int, user_id: int, fields: dict[str, Any], now: datetime
    ) -> TaskRecord | None:
        async with self._session("update_task") as session:
            result = await session.execute(
                select(Task).where(Task.id == task_id, Task.user_id == user_id)
            )
            task = result.scalar_one_or_none()
            if task is None:
                return None
            for name, value in fields.items():
                setattr(task, name, value)
            task.updated_at = now
            await session.commit()
            await session.refresh(task)
        return TaskRecord.model_validate(task)

    async def delete_task(self, task_id: int, user_id: int) -> bool:
        async with self._session("delete_task") as session:
            result = await session.execute(
                delete(Task).where(Task.id == task_id, Task.user_id == user_id)
            )
            await session.commit()
        return (result.rowcount or 0) > 0
