"""Task endpoints, all scoped to the authenticated user."""
import re

from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_current_user_id, get_task_repository
from ..errors import NotFoundOrForbidden, ValidationError
from ..schemas import TaskCreate, TaskRecord, TaskStats, TaskUpdate
from ..tasks import TaskRepository

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


# Largest id a SQLite INTEGER column can hold.
MAX_TASK_ID = 2**63 - 1

_TASK_ID = re.compile(r"-?[0-9]+")


def parse_task_id(raw: str) -> int:
    """Path ids must be plain decimal integers.

    Well-formed ids that no row could ever carry (zero, negative, or past the
    64-bit range) are reported as missing tasks, not as malformed input.
    """

    if not _TASK_ID.fullmatch(raw):
        raise ValidationError.for_field("id", "Invalid task ID")
    digits = raw.lstrip("-").lstrip("0")
    if len(digits) > len(str(MAX_TASK_ID)):
        raise NotFoundOrForbidden("Task not found")
    task_id = int(raw)
    if not 1 <= task_id <= MAX_TASK_ID:
        raise NotFoundOrForbidden("Task not found")
    return task_id


@router.get("", response_model=list[TaskRecord])
async def list_tasks(
    user_id: int = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> list[TaskRecord]:
    """Return the caller's tasks, oldest first."""

    return await repo.list(user_id)


@router.get("/stats", response_model=TaskStats)
async def task_stats(
    user_id: int = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskStats:
    """Return total/completed/pending/overdue counts."""

    return await repo.stats(user_id)


@router.get("/{task_id}", response_model=TaskRecord)
async def get_task(
    task_id: str,
    user_id: int = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskRecord:
    task = await repo.get(parse_task_id(task_id), user_id)
    if task is None:
        raise NotFoundOrForbidden("Task not found")
    return task


@router.post("", response_model=TaskRecord, status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreate,
    user_id: int = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskRecord:
    """Create a task owned by the caller."""

    return await repo.create(
        user_id,
        payload.title,
        description=payload.description,
        priority=payload.priority,
        due_date=payload.due_date,
        completed=payload.completed,
    )


@router.patch("/{task_id}", response_model=TaskRecord)
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    user_id: int = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskRecord:
    """Apply a partial update; omitted fields keep their values."""

    task = await repo.update(parse_task_id(task_id), user_id, payload.changes())
    if task is None:
        raise NotFoundOrForbidden("Task not found")
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: str,
    user_id: int = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> Response:
    if not await repo.delete(parse_task_id(task_id), user_id):
        raise NotFoundOrForbidden("Task not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
