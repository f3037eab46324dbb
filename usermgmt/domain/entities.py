"""Entity dataclasses shared by every storage adapter."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

TagValue = Union[str, int, float, bool]
Tags = Dict[str, TagValue]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_timestamp(previous: Optional[datetime]) -> datetime:
    """Return now, or ``previous`` when the clock went backwards."""
    now = utc_now()
    if previous is not None and previous > now:
        return previous
    return now


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


@dataclass
class User:
    id: str
    username: str
    email: str
    created_at: datetime
    updated_at: datetime
    password_hash: Optional[str] = None
    tags: Tags = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "tags": dict(self.tags),
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }
        if self.password_hash is not None:
            data["passwordHash"] = self.password_hash
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            id=data["id"],
            username=data["username"],
            email=data["email"],
            password_hash=data.get("passwordHash"),
            tags=dict(data.get("tags") or {}),
            created_at=parse_timestamp(data["createdAt"]),
            updated_at=parse_timestamp(data["updatedAt"]),
        )


@dataclass
class Role:
    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    tags: Tags = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "tags": dict(self.tags),
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Role":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description"),
            tags=dict(data.get("tags") or {}),
            created_at=parse_timestamp(data["createdAt"]),
            updated_at=parse_timestamp(data["updatedAt"]),
        )


@dataclass
class UserRole:
    user_id: str
    role_id: str
    created_at: datetime

    @property
    def key(self) -> Tuple[str, str]:
        return (self.user_id, self.role_id)

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "roleId": self.role_id,
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserRole":
        return cls(
            user_id=data["userId"],
            role_id=data["roleId"],
            created_at=parse_timestamp(data["createdAt"]),
        )


# Fields callers may set on create/update; identity and timestamps are store-owned.
USER_FIELDS = ("username", "email", "password_hash", "tags")
ROLE_FIELDS = ("name", "description", "tags")
READONLY_FIELDS = ("id", "created_at", "updated_at")
