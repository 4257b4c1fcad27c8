from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends

from ..auth import get_current_user_id
from ..dependencies import get_task_repository
from ..errors import NotFound
from ..repositories import TaskRepository
from ..schemas import MessageOut, TaskCreate, TaskOut, TaskUpdate

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
    dependencies=[Depends(get_current_user_id)],
    responses={401: {"description": "Missing or invalid token", "model": MessageOut}},
)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TaskOut],
    summary="List Tasks",
    description="List the caller's tasks, newest first.",
)
def list_tasks(
    user_id: str = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> List[TaskOut]:
    """
    List all tasks owned by the caller.
    """
    return [TaskOut(**t) for t in repo.list_by_owner(user_id)]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    summary="Create Task",
    description="Create a task owned by the caller and return it.",
    responses={400: {"description": "Task text is empty", "model": MessageOut}},
)
def create_task(
    payload: Optional[TaskCreate] = None,
    user_id: str = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskOut:
    """
    Create a new task.
    """
    text = payload.text if payload is not None else None
    created = repo.create(user_id, text or "")
    return TaskOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single task by ID. Tasks owned by other users are reported as not found.",
    responses={404: {"description": "Task not found", "model": MessageOut}},
)
def get_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskOut:
    """
    Retrieve a single task by its ID.
    """
    item = repo.find_by_id_and_owner(task_id, user_id)
    if item is None:
        raise NotFound()
    return TaskOut(**item)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description=(
        "Update the text and/or completion flag of a task. Omitted fields are left unchanged; "
        "an explicit false for completed is applied."
    ),
    responses={
        400: {"description": "Task text is empty", "model": MessageOut},
        404: {"description": "Task not found", "model": MessageOut},
    },
)
def update_task(
    task_id: str,
    payload: TaskUpdate,
    user_id: str = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> TaskOut:
    """
    Partial update of a task.
    """
    updated = repo.update(task_id, user_id, payload.to_patch())
    return TaskOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    response_model=MessageOut,
    summary="Delete Task",
    description=(
        "Delete a task by ID. Always succeeds: deleting a task that does not exist or "
        "belongs to someone else is a no-op."
    ),
)
def delete_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: TaskRepository = Depends(get_task_repository),
) -> MessageOut:
    """
    Delete a task. Returns the same message whether or not anything was removed.
    """
    repo.delete_by_id_and_owner(task_id, user_id)
    return MessageOut(message="Task deleted successfully")
