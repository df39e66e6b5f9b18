"""Reusable FastAPI dependencies, including the authorization gate."""
from __future__ import annotations

from fastapi import Depends, Request

from .config import Settings
from .credentials import CredentialStore
from .errors import Unauthenticated
from .sessions import SessionManager, decode_session_cookie
from .tasks import TaskRepository


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_task_repository(request: Request) -> TaskRepository:
    return request.app.state.tasks


def get_session_token(
    request: Request, settings: Settings = Depends(get_settings_dep)
) -> str | None:
    """Session token carried by the request cookie, if the cookie is genuine."""

    return decode_session_cookie(
        request.cookies.get(settings.session_cookie_name), settings.secret_key
    )


async def get_current_user_id(
    token: str | None = Depends(get_session_token),
    sessions: SessionManager = Depends(get_session_manager),
) -> int:
    """
    Resolve the caller's user id from the session, failing closed.

    Handlers receive ownership only from here; request bodies never carry it.
    """
    user_id = sessions.resolve(token)
    if user_id is None:
        raise Unauthenticated()
    return user_id
