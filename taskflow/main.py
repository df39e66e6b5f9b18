"""FastAPI application entry point."""
import asyncio
import contextlib
import logging
from datetime import timedelta

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .credentials import CredentialStore, build_password_context
from .errors import StoreFailure, TaskflowError
from .routers.auth import router as auth_router
from .routers.tasks import router as tasks_router
from .sessions import SessionManager
from .storage import Storage, create_storage
from .tasks import TaskRepository

logger = logging.getLogger(__name__)


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "body"


async def handle_taskflow_error(request: Request, exc: TaskflowError) -> JSONResponse:
    if isinstance(exc, StoreFailure):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": _field_name(tuple(err.get("loc", ()))), "message": err.get("msg", "Invalid value")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation failed", "errors": errors},
    )


def create_app(settings: Settings | None = None, storage: Storage | None = None) -> FastAPI:
    """Build the application with its storage, session table and services wired in."""

    settings = settings or get_settings()
    storage = storage or create_storage(settings)

    app = FastAPI(title="TaskFlow Backend", version="0.1.0")
    app.state.settings = settings
    app.state.storage = storage
    app.state.sessions = SessionManager(ttl=timedelta(seconds=settings.session_ttl_seconds))
    app.state.credentials = CredentialStore(
        storage, build_password_context(settings.password_hash_rounds)
    )
    app.state.tasks = TaskRepository(storage)
    app.state.sweeper = None

    app.include_router(auth_router)
    app.include_router(tasks_router)
    app.add_exception_handler(TaskflowError, handle_taskflow_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)

    @app.on_event("startup")
    async def on_startup() -> None:
        """Ensure database tables exist and start the session sweeper."""

        await app.state.storage.create_schema()
        app.state.sweeper = asyncio.create_task(
            app.state.sessions.run_sweeper(settings.session_sweep_seconds)
        )
        logger.info("TaskFlow started with %s storage", settings.storage_backend)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        sweeper = app.state.sweeper
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
        await app.state.storage.close()

    @app.get("/health", tags=["system"])
    async def healthcheck() -> dict[str, str]:
        """Readiness check for uptime monitors."""

        return {"status": "ok"}

    return app
