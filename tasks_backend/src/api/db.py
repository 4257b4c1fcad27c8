from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Union

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from .errors import DuplicateUsername, NotFound, Unauthorized
from .models import TaskEntity, UserEntity
from .repositories import TaskRepository, UserRepository, clean_patch, require_text, utcnow
from .settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _UserFields:
    collection: str = "users"
    id: str = "_id"
    username: str = "username"
    password: str = "password"


@dataclass(frozen=True)
class _TaskFields:
    collection: str = "tasks"
    id: str = "_id"
    owner_id: str = "userId"
    text: str = "text"
    completed: str = "completed"
    created_at: str = "createdAt"


_USERS = _UserFields()
_TASKS = _TaskFields()


def _object_id(value: str) -> Optional[ObjectId]:
    """Parse a hex id; malformed ids are treated like unknown ones."""
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


# PUBLIC_INTERFACE
def create_client(settings: Settings) -> MongoClient:
    """
    Build the process-wide MongoClient.

    Server connections are opened lazily, but a mongodb+srv:// URI is resolved
    through DNS right here and raises ConfigurationError when that fails.
    """
    return MongoClient(settings.mongo_uri, tz_aware=True, serverSelectionTimeoutMS=5000)


# PUBLIC_INTERFACE
class MongoConnection:
    """
    Process-wide MongoDB handle whose client is built on first use.

    Building the app never touches the network, so a bad or unreachable
    URI cannot stop the process from starting. Until a client can be built,
    each store operation raises the pymongo error and that request fails.
    """

    def __init__(self, settings: Settings, client: Any = None) -> None:
        self._settings = settings
        self._client = client
        # only clients built here are closed here
        self._owns_client = client is None
        self._lock = threading.Lock()

    @property
    def client(self) -> Any:
        with self._lock:
            if self._client is None:
                self._client = create_client(self._settings)
            return self._client

    @property
    def database(self) -> Database:
        return self.client[self._settings.mongo_db_name]

    def __getitem__(self, name: str) -> Collection:
        return self.database[name]

    def close(self) -> None:
        with self._lock:
            if self._owns_client and self._client is not None:
                self._client.close()
                self._client = None


# PUBLIC_INTERFACE
def ping(database: Database) -> None:
    """Round-trip to the server. Raises pymongo.errors.PyMongoError when unreachable."""
    database.command("ping")


# PUBLIC_INTERFACE
def prepare_database(source: Union[Database, MongoConnection]) -> bool:
    """
    Check connectivity and create the indexes the repositories rely on.

    Failures, including an unresolvable mongodb+srv:// seed list, are logged
    rather than raised so the API keeps serving; requests that need the
    database will fail on their own until it becomes reachable.
    """
    try:
        database = source.database if isinstance(source, MongoConnection) else source
        ping(database)
        MongoUserRepository(database).ensure_indexes()
        MongoTaskRepository(database).ensure_indexes()
    except PyMongoError as e:
        logger.error("MongoDB connection error: %s", e)
        return False
    logger.info("Connected to MongoDB database %r", database.name)
    return True


class MongoUserRepository(UserRepository):
    """
    Credential store backed by the ``users`` collection.
    """

    def __init__(self, database: Union[Database, MongoConnection]) -> None:
        self._db = database

    @property
    def _col(self) -> Collection:
        return self._db[_USERS.collection]

    def ensure_indexes(self) -> None:
        self._col.create_index([(_USERS.username, ASCENDING)], unique=True)
        logger.debug("Ensured unique username index on %s", _USERS.collection)

    def _doc_to_entity(self, doc: Mapping[str, Any]) -> UserEntity:
        return {
            "id": str(doc[_USERS.id]),
            "username": str(doc[_USERS.username]),
            "password_hash": str(doc[_USERS.password]),
        }

    def create(self, username: str, password_hash: str) -> UserEntity:
        if self._col.find_one({_USERS.username: username}) is not None:
            raise DuplicateUsername()
        doc = {_USERS.username: username, _USERS.password: password_hash}
        try:
            result = self._col.insert_one(doc)
        except DuplicateKeyError as e:
            # lost a race with a concurrent registration; the unique index decides
            raise DuplicateUsername() from e
        doc[_USERS.id] = result.inserted_id
        return self._doc_to_entity(doc)

    def find_by_username(self, username: str) -> Optional[UserEntity]:
        doc = self._col.find_one({_USERS.username: username})
        return self._doc_to_entity(doc) if doc else None


class MongoTaskRepository(TaskRepository):
    """
    Task store backed by the ``tasks`` collection. Owner ids are stored as
    ObjectIds referencing ``users._id``.
    """

    def __init__(self, database: Union[Database, MongoConnection]) -> None:
        self._db = database

    @property
    def _col(self) -> Collection:
        return self._db[_TASKS.collection]

    def ensure_indexes(self) -> None:
        self._col.create_index([(_TASKS.owner_id, ASCENDING), (_TASKS.created_at, DESCENDING)])
        logger.debug("Ensured owner/createdAt index on %s", _TASKS.collection)

    def _doc_to_entity(self, doc: Mapping[str, Any]) -> TaskEntity:
        return {
            "id": str(doc[_TASKS.id]),
            "owner_id": str(doc[_TASKS.owner_id]),
            "text": str(doc[_TASKS.text]),
            "completed": bool(doc.get(_TASKS.completed, False)),
            "created_at": _aware(doc[_TASKS.created_at]),
        }

    def _owned_filter(self, task_id: str, owner_id: str) -> Optional[dict]:
        tid = _object_id(task_id)
        oid = _object_id(owner_id)
        if tid is None or oid is None:
            return None
        return {_TASKS.id: tid, _TASKS.owner_id: oid}

    def create(self, owner_id: str, text: str) -> TaskEntity:
        oid = _object_id(owner_id)
        if oid is None:
            # a signed token whose user id can never match a stored user
            raise Unauthorized("Invalid token")
        now = utcnow()
        doc = {
            _TASKS.owner_id: oid,
            _TASKS.text: require_text(text),
            _TASKS.completed: False,
            # BSON dates keep millisecond precision only
            _TASKS.created_at: now.replace(microsecond=now.microsecond // 1000 * 1000),
        }
        result = self._col.insert_one(doc)
        doc[_TASKS.id] = result.inserted_id
        return self._doc_to_entity(doc)

    def list_by_owner(self, owner_id: str) -> List[TaskEntity]:
        oid = _object_id(owner_id)
        if oid is None:
            return []
        cursor = self._col.find({_TASKS.owner_id: oid}).sort(
            [(_TASKS.created_at, DESCENDING), (_TASKS.id, DESCENDING)]
        )
        return [self._doc_to_entity(d) for d in cursor]

    def find_by_id_and_owner(self, task_id: str, owner_id: str) -> Optional[TaskEntity]:
        query = self._owned_filter(task_id, owner_id)
        if query is None:
            return None
        doc = self._col.find_one(query)
        return self._doc_to_entity(doc) if doc else None

    def update(self, task_id: str, owner_id: str, patch: Mapping[str, Any]) -> TaskEntity:
        changes = clean_patch(patch)
        query = self._owned_filter(task_id, owner_id)
        if query is None:
            raise NotFound()

        if not changes:
            doc = self._col.find_one(query)
        else:
            doc = self._col.find_one_and_update(
                query,
                {"$set": {getattr(_TASKS, k): v for k, v in changes.items()}},
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFound()
        return self._doc_to_entity(doc)

    def delete_by_id_and_owner(self, task_id: str, owner_id: str) -> bool:
        query = self._owned_filter(task_id, owner_id)
        if query is None:
            return False
        return self._col.delete_one(query).deleted_count > 0
