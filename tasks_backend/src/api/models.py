from __future__ import annotations

from datetime import datetime
from typing import TypedDict


# PUBLIC_INTERFACE
class UserEntity(TypedDict):
    """
    A registered user as held by a credential store.

    Fields:
    - id: Opaque string identifier (ObjectId hex for MongoDB, uuid hex in memory)
    - username: Unique login name
    - password_hash: bcrypt hash of the password; never returned by the API
    """

    id: str
    username: str
    password_hash: str


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A task owned by exactly one user.

    Fields:
    - id: Opaque string identifier
    - owner_id: Id of the owning user, always taken from the caller's session
    - text: Non-empty task text (trimmed)
    - completed: Boolean completion flag
    - created_at: UTC creation timestamp, immutable
    """

    id: str
    owner_id: str
    text: str
    completed: bool
    created_at: datetime
