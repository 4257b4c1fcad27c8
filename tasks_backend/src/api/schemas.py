from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _strip(value: Optional[str]) -> Optional[str]:
    """Trim surrounding whitespace; leave None untouched."""
    if value is None:
        return None
    return value.strip()


# PUBLIC_INTERFACE
class Credentials(BaseModel):
    """
    Username/password pair used by both /register and /login.

    Both fields are declared optional so that a missing field is reported by
    the handler as "Missing fields" rather than as a schema error.
    """

    model_config = ConfigDict(
        json_schema_extra={"example": {"username": "alice", "password": "s3cret"}}
    )

    username: Optional[str] = Field(default=None, description="Login name; must be unique")
    password: Optional[str] = Field(default=None, description="Plaintext password")

    def is_complete(self) -> bool:
        return bool(self.username) and bool(self.password)


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new task. Ownership always comes from the session,
    so any extra field sent by the client is ignored.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"text": "Buy groceries"}})

    text: Optional[str] = Field(default=None, description="Task text; must not be blank")

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip(v)


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for updating an existing task.
    All fields are optional; only provided fields will be updated.
    """

    model_config = ConfigDict(
        json_schema_extra={"example": {"text": "Buy groceries and supplies", "completed": True}}
    )

    text: Optional[str] = Field(default=None, description="New task text; must not be blank when given")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip(v)

    def to_patch(self) -> Dict[str, Any]:
        """
        Return only the fields the client actually sent.

        An explicit ``completed: false`` is kept; an explicit ``null`` is
        treated the same as an omitted field.
        """
        return {
            name: value
            for name, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task. Serialized with camelCase keys.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "65f1c0d2a4b3e9f0a1b2c3d4",
                "ownerId": "65f1c0aaa4b3e9f0a1b2c3d0",
                "text": "Buy groceries",
                "completed": False,
                "createdAt": "2025-01-25T10:15:30.123000",
            }
        },
    )

    id: str = Field(..., description="Unique identifier of the task")
    owner_id: str = Field(..., description="Identifier of the owning user")
    text: str = Field(..., description="Task text")
    completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")


# PUBLIC_INTERFACE
class TokenOut(BaseModel):
    """Session token returned by /login."""

    token: str = Field(..., description="Signed session token, valid for 24 hours by default")


# PUBLIC_INTERFACE
class MessageOut(BaseModel):
    """Plain confirmation or error message."""

    message: str
