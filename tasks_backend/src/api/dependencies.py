from __future__ import annotations

from fastapi import Request

from .repositories import TaskRepository, UserRepository


# PUBLIC_INTERFACE
def get_user_repository(request: Request) -> UserRepository:
    """Credential store wired into app.state by the app factory."""
    return request.app.state.users


# PUBLIC_INTERFACE
def get_task_repository(request: Request) -> TaskRepository:
    """Task store wired into app.state by the app factory."""
    return request.app.state.tasks
