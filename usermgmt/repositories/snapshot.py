"""
Snapshot-backed implementation of the storage contract.

The whole adapter state is one Snapshot (users, roles, user roles). Outside
a transaction a mutation edits a copy of the live snapshot, _persist writes
that copy and only then does it replace the live one, so a failed write
leaves the live state untouched. Adapters with nothing to write (the
volatile one) set copy_on_write = False and edit the live snapshot in place.

begin_transaction deep-copies the live snapshot into a working copy that
every operation uses until commit persists and promotes it or rollback drops
it; _persist is never called in between.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from usermgmt.core.errors import ReferentialError, ValidationError
from usermgmt.domain.entities import ROLE_FIELDS, USER_FIELDS, Role, User, UserRole, next_timestamp, utc_now
from usermgmt.domain.ids import generate_id
from usermgmt.domain.validation import validate_changes, validate_role, validate_user

from .base import StorageAdapter, ensure_ids
from .query import Page, apply_query

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    users: Dict[str, User] = field(default_factory=dict)
    roles: Dict[str, Role] = field(default_factory=dict)
    user_roles: Dict[Tuple[str, str], UserRole] = field(default_factory=dict)

    def copy(self) -> "Snapshot":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "users": [u.to_dict() for u in self.users.values()],
            "roles": [r.to_dict() for r in self.roles.values()],
            "userRoles": [ur.to_dict() for ur in self.user_roles.values()],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        users = [User.from_dict(item) for item in data.get("users") or []]
        roles = [Role.from_dict(item) for item in data.get("roles") or []]
        links = [UserRole.from_dict(item) for item in data.get("userRoles") or []]
        return cls(
            users={u.id: u for u in users},
            roles={r.id: r for r in roles},
            user_roles={ur.key: ur for ur in links},
        )


def _clean(data: Mapping[str, Any]) -> dict:
    return {key: copy.deepcopy(value) for key, value in data.items()}


class SnapshotAdapter(StorageAdapter):
    """Full contract over an in-process Snapshot; subclasses decide how to persist it."""

    copy_on_write = True

    def __init__(self, options: Optional[Mapping[str, Any]] = None):
        super().__init__(options)
        self._live = Snapshot()
        self._working: Optional[Snapshot] = None

    async def _persist(self, snapshot: Snapshot) -> None:
        """Make ``snapshot`` durable. Called outside transactions and once per commit."""

    def _state(self) -> Snapshot:
        if self._in_transaction and self._working is not None:
            return self._working
        return self._live

    def _target(self) -> Snapshot:
        """Snapshot a mutation should edit; outside a transaction it is promoted by _mutated."""
        if self._in_transaction and self._working is not None:
            return self._working
        return self._live.copy() if self.copy_on_write else self._live

    async def _mutated(self, state: Snapshot) -> None:
        if self._in_transaction:
            return
        await self._persist(state)
        self._live = state

    # -------------------------- users --------------------------
    async def create_user(self, data: Mapping[str, Any]) -> User:
        if not isinstance(data, Mapping):
            raise ValidationError(validate_changes(data, USER_FIELDS))
        errors = validate_user(data)
        if errors:
            raise ValidationError(errors)
        values = _clean(data)
        now = utc_now()
        user = User(
            id=generate_id(),
            username=values["username"],
            email=values["email"],
            password_hash=values.get("password_hash"),
            tags=dict(values.get("tags") or {}),
            created_at=now,
            updated_at=now,
        )
        state = self._target()
        state.users[user.id] = user
        await self._mutated(state)
        return copy.deepcopy(user)

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        ensure_ids(("id", user_id))
        user = self._state().users.get(user_id)
        return copy.deepcopy(user) if user else None

    async def get_users(self, options: Any = None) -> Page[User]:
        page = apply_query(list(self._state().users.values()), options)
        return Page(items=copy.deepcopy(page.items), total=page.total)

    async def update_user(self, user_id: str, changes: Mapping[str, Any]) -> Optional[User]:
        ensure_ids(("id", user_id))
        errors = validate_changes(changes, USER_FIELDS)
        if errors:
            raise ValidationError(errors)
        state = self._target()
        current = state.users.get(user_id)
        if current is None:
            return None
        merged = {name: getattr(current, name) for name in USER_FIELDS}
        merged.update(_clean(changes))
        errors = validate_user(merged)
        if errors:
            raise ValidationError(errors)
        if merged.get("tags") is None:
            merged["tags"] = {}
        updated = replace(current, **merged, updated_at=next_timestamp(current.updated_at))
        state.users[user_id] = updated
        await self._mutated(state)
        return copy.deepcopy(updated)

    async def delete_user(self, user_id: str) -> bool:
        ensure_ids(("id", user_id))
        state = self._target()
        if user_id not in state.users:
            return False
        for key in [k for k in state.user_roles if k[0] == user_id]:
            del state.user_roles[key]
        del state.users[user_id]
        await self._mutated(state)
        return True

    # -------------------------- roles --------------------------
    async def create_role(self, data: Mapping[str, Any]) -> Role:
        if not isinstance(data, Mapping):
            raise ValidationError(validate_changes(data, ROLE_FIELDS))
        errors = validate_role(data)
        if errors:
            raise ValidationError(errors)
        values = _clean(data)
        now = utc_now()
        role = Role(
            id=generate_id(),
            name=values["name"],
            description=values.get("description"),
            tags=dict(values.get("tags") or {}),
            created_at=now,
            updated_at=now,
        )
        state = self._target()
        state.roles[role.id] = role
        await self._mutated(state)
        return copy.deepcopy(role)

    async def get_role_by_id(self, role_id: str) -> Optional[Role]:
        ensure_ids(("id", role_id))
        role = self._state().roles.get(role_id)
        return copy.deepcopy(role) if role else None

    async def get_roles(self, options: Any = None) -> Page[Role]:
        page = apply_query(list(self._state().roles.values()), options)
        return Page(items=copy.deepcopy(page.items), total=page.total)

    async def update_role(self, role_id: str, changes: Mapping[str, Any]) -> Optional[Role]:
        ensure_ids(("id", role_id))
        errors = validate_changes(changes, ROLE_FIELDS)
        if errors:
            raise ValidationError(errors)
        state = self._target()
        current = state.roles.get(role_id)
        if current is None:
            return None
        merged = {name: getattr(current, name) for name in ROLE_FIELDS}
        merged.update(_clean(changes))
        errors = validate_role(merged)
        if errors:
            raise ValidationError(errors)
        if merged.get("tags") is None:
            merged["tags"] = {}
        updated = replace(current, **merged, updated_at=next_timestamp(current.updated_at))
        state.roles[role_id] = updated
        await self._mutated(state)
        return copy.deepcopy(updated)

    async def delete_role(self, role_id: str) -> bool:
        ensure_ids(("id", role_id))
        state = self._target()
        if role_id not in state.roles:
            return False
        for key in [k for k in state.user_roles if k[1] == role_id]:
            del state.user_roles[key]
        del state.roles[role_id]
        await self._mutated(state)
        return True

    # -------------------------- user roles --------------------------
    async def assign_role(self, user_id: str, role_id: str) -> UserRole:
        ensure_ids(("user_id", user_id), ("role_id", role_id))
        state = self._target()
        if user_id not in state.users or role_id not in state.roles:
            raise ReferentialError(user_id, role_id)
        existing = state.user_roles.get((user_id, role_id))
        if existing is not None:
            return copy.deepcopy(existing)
        link = UserRole(user_id=user_id, role_id=role_id, created_at=utc_now())
        state.user_roles[link.key] = link
        await self._mutated(state)
        return copy.deepcopy(link)

    async def remove_role(self, user_id: str, role_id: str) -> bool:
        ensure_ids(("user_id", user_id), ("role_id", role_id))
        state = self._target()
        if state.user_roles.pop((user_id, role_id), None) is None:
            return False
        await self._mutated(state)
        return True

    async def get_user_roles(self, user_id: str) -> List[Role]:
        ensure_ids(("user_id", user_id))
        state = self._state()
        role_ids = {rid for (uid, rid) in state.user_roles if uid == user_id}
        return [copy.deepcopy(r) for r in state.roles.values() if r.id in role_ids]

    async def get_role_users(self, role_id: str) -> List[User]:
        ensure_ids(("role_id", role_id))
        state = self._state()
        user_ids = {uid for (uid, rid) in state.user_roles if rid == role_id}
        return [copy.deepcopy(u) for u in state.users.values() if u.id in user_ids]

    # -------------------------- transactions --------------------------
    async def begin_transaction(self) -> None:
        self._require_no_transaction()
        self._working = self._live.copy()
        self._in_transaction = True
        logger.debug("%s: transaction started", self.name)

    async def commit(self) -> None:
        self._require_transaction()
        working = self._working
        # persist before promoting so a failed write leaves the transaction open
        await self._persist(working)
        self._live = working
        self._working = None
        self._in_transaction = False
        logger.debug("%s: transaction committed", self.name)

    async def rollback(self) -> None:
        self._require_transaction()
        self._working = None
        self._in_transaction = False
        logger.debug("%s: transaction rolled back", self.name)
