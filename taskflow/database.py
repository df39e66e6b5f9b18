"""Async engine and session factory construction."""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign keys switched on."""

    is_sqlite = database_url.startswith("sqlite+")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    engine = create_async_engine(database_url, future=True, echo=echo, connect_args=connect_args)

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

    return engine


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by DatabaseStorage, one session per operation."""

    return async_sessionmaker(engine, expire_on_commit=False)
