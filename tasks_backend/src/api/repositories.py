from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import DuplicateUsername, NotFound, ValidationError
from .models import TaskEntity, UserEntity
from .settings import Settings

logger = logging.getLogger(__name__)

EMPTY_TASK_MESSAGE = "Task cannot be empty"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_text(text: Optional[str]) -> str:
    """Return trimmed task text, raising ValidationError if it is blank."""
    s = (text or "").strip()
    if not s:
        raise ValidationError(EMPTY_TASK_MESSAGE)
    return s


def clean_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Keep only the updatable task fields present in ``patch``.

    ``text`` is validated when present; ``completed`` is coerced to bool so an
    explicit false is applied rather than dropped.
    """
    changes: Dict[str, Any] = {}
    if "text" in patch:
        changes["text"] = require_text(patch["text"])
    if "completed" in patch:
        changes["completed"] = bool(patch["completed"])
    return changes


# PUBLIC_INTERFACE
class UserRepository(ABC):
    """Abstract credential store contract."""

    @abstractmethod
    def create(self, username: str, password_hash: str) -> UserEntity:
        """Insert a new user. Raise DuplicateUsername if the username is taken."""

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[UserEntity]:
        """Return the user with this username, or None."""


# PUBLIC_INTERFACE
class TaskRepository(ABC):
    """Abstract task store contract. Every lookup is scoped to an owner."""

    @abstractmethod
    def create(self, owner_id: str, text: str) -> TaskEntity:
        """Create and return a new task. Raise ValidationError on blank text."""

    @abstractmethod
    def list_by_owner(self, owner_id: str) -> List[TaskEntity]:
        """Return all tasks of ``owner_id``, newest first."""

    @abstractmethod
    def find_by_id_and_owner(self, task_id: str, owner_id: str) -> Optional[TaskEntity]:
        """Return the task, or None if it does not exist or belongs to someone else."""

    @abstractmethod
    def update(self, task_id: str, owner_id: str, patch: Mapping[str, Any]) -> TaskEntity:
        """Apply the fields present in ``patch`` and return the task. Raise NotFound if not owned."""

    @abstractmethod
    def delete_by_id_and_owner(self, task_id: str, owner_id: str) -> bool:
        """Delete the task if owned. Return True if something was deleted."""


class InMemoryUserRepository(UserRepository):
    """
    Thread-safe in-memory credential store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._by_username: Dict[str, UserEntity] = {}

    def create(self, username: str, password_hash: str) -> UserEntity:
        with self._lock:
            if username in self._by_username:
                raise DuplicateUsername()
            user: UserEntity = {
                "id": uuid.uuid4().hex,
                "username": username,
                "password_hash": password_hash,
            }
            self._by_username[username] = user
            return user.copy()

    def find_by_username(self, username: str) -> Optional[UserEntity]:
        with self._lock:
            user = self._by_username.get(username)
            return None if user is None else user.copy()


class InMemoryTaskRepository(TaskRepository):
    """
    Thread-safe in-memory task store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, TaskEntity] = {}
        # insertion sequence, used to order tasks created within the same clock tick
        self._seq: Dict[str, int] = {}
        self._next_seq = 0

    def _now(self) -> datetime:
        return utcnow()

    def _owned(self, task_id: str, owner_id: str) -> Optional[TaskEntity]:
        item = self._items.get(task_id)
        if item is None or item["owner_id"] != owner_id:
            return None
        return item

    def create(self, owner_id: str, text: str) -> TaskEntity:
        entity: TaskEntity = {
            "id": uuid.uuid4().hex,
            "owner_id": owner_id,
            "text": require_text(text),
            "completed": False,
            "created_at": self._now(),
        }
        with self._lock:
            self._items[entity["id"]] = entity
            self._seq[entity["id"]] = self._next_seq
            self._next_seq += 1
        return entity.copy()

    def list_by_owner(self, owner_id: str) -> List[TaskEntity]:
        with self._lock:
            owned: List[Tuple[datetime, int, TaskEntity]] = [
                (t["created_at"], self._seq[t["id"]], t)
                for t in self._items.values()
                if t["owner_id"] == owner_id
            ]
            owned.sort(key=lambda row: (row[0], row[1]), reverse=True)
            # Return copies to avoid external mutation
            return [t.copy() for _, _, t in owned]

    def find_by_id_and_owner(self, task_id: str, owner_id: str) -> Optional[TaskEntity]:
        with self._lock:
            item = self._owned(task_id, owner_id)
            return None if item is None else item.copy()

    def update(self, task_id: str, owner_id: str, patch: Mapping[str, Any]) -> TaskEntity:
        changes = clean_patch(patch)
        with self._lock:
            existing = self._owned(task_id, owner_id)
            if existing is None:
                raise NotFound()

            # Update only provided fields
            updated = existing.copy()
            updated.update(changes)  # type: ignore[typeddict-item]
            self._items[task_id] = updated
            return updated.copy()

    def delete_by_id_and_owner(self, task_id: str, owner_id: str) -> bool:
        with self._lock:
            if self._owned(task_id, owner_id) is None:
                return False
            del self._items[task_id]
            del self._seq[task_id]
            return True


# PUBLIC_INTERFACE
def build_repositories(settings: Settings, client: Any = None) -> Tuple[UserRepository, TaskRepository]:
    """
    Factory returning the configured (credential store, task store) pair.
    - memory: InMemoryUserRepository / InMemoryTaskRepository
    - mongo: MongoUserRepository / MongoTaskRepository sharing one database handle

    ``client`` may be a MongoConnection, an already constructed MongoClient
    (or a compatible test double), or None; in the last case a client is
    created from settings.mongo_uri on first use, never here.
    """
    if settings.persistence_backend == "mongo":
        from .db import MongoConnection, MongoTaskRepository, MongoUserRepository

        database = client if isinstance(client, MongoConnection) else MongoConnection(settings, client)
        logger.info("Using MongoDB backend (database %r)", settings.mongo_db_name)
        return MongoUserRepository(database), MongoTaskRepository(database)

    logger.info("Using in-memory backend")
    return InMemoryUserRepository(), InMemoryTaskRepository()
