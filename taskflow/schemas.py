"""Pydantic schemas used across the backend API."""
from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

Priority = Literal["low", "medium", "high"]

TITLE_MAX_LENGTH = 200


def _utc_isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# Stored naive, always UTC; clients get an explicit "Z" suffix.
UtcDatetime = Annotated[
    datetime, PlainSerializer(_utc_isoformat, return_type=str, when_used="json")
]


class CamelModel(BaseModel):
    """Base for models exchanged with the browser client (camelCase keys)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Stored records, returned by every Storage implementation
# ---------------------------------------------------------------------------


class UserRecord(CamelModel):
    """Full user row. Holds the password hash, so never serialised directly."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    password_hash: str
    first_name: str | None = None
    last_name: str | None = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class TaskRecord(CamelModel):
    """Task as stored and as returned to its owner."""

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    title: str
    description: str | None = None
    priority: Priority = "medium"
    due_date: str | None = None
    completed: bool = False
    created_at: UtcDatetime
    updated_at: UtcDatetime


# ---------------------------------------------------------------------------
# Auth payloads
# ---------------------------------------------------------------------------


class UserLogin(CamelModel):
    """Credentials supplied during login."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserCreate(CamelModel):
    """Payload for user registration."""

    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    confirm_password: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @model_validator(mode="after")
    def _passwords_match(self) -> "UserCreate":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords don't match")
        return self


class UserRead(CamelModel):
    """Public representation of a user."""

    id: int
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None


class UserSummary(CamelModel):
    """Short user description returned on login."""

    id: int
    username: str
    email: str


class LoginResponse(CamelModel):
    message: str
    user: UserSummary


class SignupResponse(CamelModel):
    message: str
    user_id: int


class MessageResponse(CamelModel):
    message: str


# ---------------------------------------------------------------------------
# Task payloads
# ---------------------------------------------------------------------------


class TaskCreate(CamelModel):
    """Fields a client may set when creating a task. Ownership is never one of them."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = None
    priority: Priority = "medium"
    due_date: str | None = None
    completed: bool = False


class TaskUpdate(CamelModel):
    """Partial task update; only keys present in the request are applied."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = None
    priority: Priority | None = None
    due_date: str | None = None
    completed: bool | None = None

    @field_validator("title", "priority", "completed")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

    def changes(self) -> dict:
        """Explicitly provided fields, keyed by attribute name."""

        return self.model_dump(exclude_unset=True)


class TaskStats(CamelModel):
    total: int
    completed: int
    pending: int
    overdue: int
