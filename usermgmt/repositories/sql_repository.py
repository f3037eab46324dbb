"""
SQL adapter backed by SQLAlchemy.

Outside a transaction every call runs in its own session and commits on
success. begin_transaction opens one session that all calls share until
commit or rollback, so the database's own transaction provides isolation.
Listing loads rows in insertion order and runs the shared query engine, so
filters, sorting and pagination behave exactly as in the snapshot adapters.

Session work runs in a worker thread through asyncio.to_thread, one call at a
time, so the event loop never blocks on the database.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

from usermgmt.core.config import resolve_settings
from usermgmt.core.errors import ReferentialError, ValidationError
from usermgmt.db.models import RoleRow, UserRoleRow, UserRow
from usermgmt.db.session import Base, build_engine, build_sessionmaker
from usermgmt.domain.entities import (
    ROLE_FIELDS,
    USER_FIELDS,
    Role,
    User,
    UserRole,
    next_timestamp,
    parse_timestamp,
    utc_now,
)
from usermgmt.domain.ids import generate_id
from usermgmt.domain.validation import validate_changes, validate_role, validate_user

from .base import StorageAdapter, ensure_ids
from .query import Page, apply_query
from .snapshot import Snapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        tags=dict(row.tags or {}),
        created_at=parse_timestamp(row.created_at),
        updated_at=parse_timestamp(row.updated_at),
    )


def _to_role(row: RoleRow) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        description=row.description,
        tags=dict(row.tags or {}),
        created_at=parse_timestamp(row.created_at),
        updated_at=parse_timestamp(row.updated_at),
    )


def _to_user_role(row: UserRoleRow) -> UserRole:
    return UserRole(user_id=row.user_id, role_id=row.role_id, created_at=parse_timestamp(row.created_at))


def _discard(session: Session) -> None:
    try:
        session.rollback()
    finally:
        session.close()


class SQLRepository(StorageAdapter):
    """Storage contract over a SQLAlchemy engine."""

    name = "sql"

    def __init__(self, options: Optional[Mapping[str, Any]] = None):
        super().__init__(options)
        self.database_url = resolve_settings(self.options).resolved_database_url
        self._engine = None
        self._sessionmaker = None
        self._tx: Optional[Session] = None
        self._lock: Optional[asyncio.Lock] = None

    # -------------------------- lifecycle --------------------------
    async def initialize(self, config: Optional[Mapping[str, Any]] = None) -> None:
        if config:
            merged = dict(self.options)
            merged.update(config)
            self.database_url = resolve_settings(merged).resolved_database_url
        self._lock = asyncio.Lock()
        await asyncio.to_thread(self._open)
        logger.debug("sql adapter ready (%s)", make_url(self.database_url).render_as_string(hide_password=True))

    def _open(self) -> None:
        url = make_url(self.database_url)
        if url.drivername.startswith("sqlite") and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        self._engine = build_engine(self.database_url)
        self._sessionmaker = build_sessionmaker(self._engine)
        Base.metadata.create_all(bind=self._engine)

    async def shutdown(self) -> None:
        await asyncio.to_thread(self._close)
        self._in_transaction = False
        logger.debug("sql adapter shut down")

    def _close(self) -> None:
        if self._tx is not None:
            session, self._tx = self._tx, None
            _discard(session)
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._sessionmaker = None

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        """Run blocking session work in a worker thread, one call at a time."""
        if self._lock is None:
            raise RuntimeError("SQL adapter used before initialize()")
        async with self._lock:
            return await asyncio.to_thread(fn, *args)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        if self._tx is not None:
            yield self._tx
            return
        if self._sessionmaker is None:
            raise RuntimeError("SQL adapter used before initialize()")
        session: Session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _user_row(session: Session, user_id: str) -> Optional[UserRow]:
        return session.execute(select(UserRow).where(UserRow.id == user_id)).scalar_one_or_none()

    @staticmethod
    def _role_row(session: Session, role_id: str) -> Optional[RoleRow]:
        return session.execute(select(RoleRow).where(RoleRow.id == role_id)).scalar_one_or_none()

    # -------------------------- users --------------------------
    async def create_user(self, data: Mapping[str, Any]) -> User:
        if not isinstance(data, Mapping):
            raise ValidationError(validate_changes(data, USER_FIELDS))
        errors = validate_user(data)
        if errors:
            raise ValidationError(errors)
        now = utc_now()
        row = UserRow(
            id=generate_id(),
            username=data["username"],
            email=data["email"],
            password_hash=data.get("password_hash"),
            tags=dict(data.get("tags") or {}),
            created_at=now,
            updated_at=now,
        )
        return await self._run(self._insert_user, row)

    def _insert_user(self, row: UserRow) -> User:
        with self._session() as session:
            session.add(row)
            session.flush()
            return _to_user(row)

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        ensure_ids(("id", user_id))
        return await self._run(self._get_user, user_id)

    def _get_user(self, user_id: str) -> Optional[User]:
        with self._session() as session:
            row = self._user_row(session, user_id)
            return _to_user(row) if row else None

    async def get_users(self, options: Any = None) -> Page[User]:
        users = await self._run(self._all_users)
        return apply_query(users, options)

    def _all_users(self) -> List[User]:
        with self._session() as session:
            rows = session.execute(select(UserRow).order_by(UserRow.pk)).scalars().all()
            return [_to_user(row) for row in rows]

    async def update_user(self, user_id: str, changes: Mapping[str, Any]) -> Optional[User]:
        ensure_ids(("id", user_id))
        errors = validate_changes(changes, USER_FIELDS)
        if errors:
            raise ValidationError(errors)
        return await self._run(self._update_user, user_id, changes)

    def _update_user(self, user_id: str, changes: Mapping[str, Any]) -> Optional[User]:
        with self._session() as session:
            row = self._user_row(session, user_id)
            if row is None:
                return None
            current = _to_user(row)
            merged = {name: getattr(current, name) for name in USER_FIELDS}
            merged.update(changes)
            errors = validate_user(merged)
            if errors:
                raise ValidationError(errors)
            row.username = merged["username"]
            row.email = merged["email"]
            row.password_hash = merged.get("password_hash")
            row.tags = dict(merged.get("tags") or {})
            row.updated_at = next_timestamp(current.updated_at)
            session.flush()
            return _to_user(row)

    async def delete_user(self, user_id: str) -> bool:
        ensure_ids(("id", user_id))
        return await self._run(self._delete_user, user_id)

    def _delete_user(self, user_id: str) -> bool:
        with self._session() as session:
            row = self._user_row(session, user_id)
            if row is None:
                return False
            session.execute(delete(UserRoleRow).where(UserRoleRow.user_id == user_id))
            session.delete(row)
            session.flush()
            return True

    # -------------------------- roles --------------------------
    async def create_role(self, data: Mapping[str, Any]) -> Role:
        if not isinstance(data, Mapping):
            raise ValidationError(validate_changes(data, ROLE_FIELDS))
        errors = validate_role(data)
        if errors:
            raise ValidationError(errors)
        now = utc_now()
        row = RoleRow(
            id=generate_id(),
            name=data["name"],
            description=data.get("description"),
            tags=dict(data.get("tags") or {}),
            created_at=now,
            updated_at=now,
        )
        return await self._run(self._insert_role, row)

    def _insert_role(self, row: RoleRow) -> Role:
        with self._session() as session:
            session.add(row)
            session.flush()
            return _to_role(row)

    async def get_role_by_id(self, role_id: str) -> Optional[Role]:
        ensure_ids(("id", role_id))
        return await self._run(self._get_role, role_id)

    def _get_role(self, role_id: str) -> Optional[Role]:
        with self._session() as session:
            row = self._role_row(session, role_id)
            return _to_role(row) if row else None

    async def get_roles(self, options: Any = None) -> Page[Role]:
        roles = await self._run(self._all_roles)
        return apply_query(roles, options)

    def _all_roles(self) -> List[Role]:
        with self._session() as session:
            rows = session.execute(select(RoleRow).order_by(RoleRow.pk)).scalars().all()
            return [_to_role(row) for row in rows]

    async def update_role(self, role_id: str, changes: Mapping[str, Any]) -> Optional[Role]:
        ensure_ids(("id", role_id))
        errors = validate_changes(changes, ROLE_FIELDS)
        if errors:
            raise ValidationError(errors)
        return await self._run(self._update_role, role_id, changes)

    def _update_role(self, role_id: str, changes: Mapping[str, Any]) -> Optional[Role]:
        with self._session() as session:
            row = self._role_row(session, role_id)
            if row is None:
                return None
            current = _to_role(row)
            merged = {name: getattr(current, name) for name in ROLE_FIELDS}
            merged.update(changes)
            errors = validate_role(merged)
            if errors:
                raise ValidationError(errors)
            row.name = merged["name"]
            row.description = merged.get("description")
            row.tags = dict(merged.get("tags") or {})
            row.updated_at = next_timestamp(current.updated_at)
            session.flush()
            return _to_role(row)

    async def delete_role(self, role_id: str) -> bool:
        ensure_ids(("id", role_id))
        return await self._run(self._delete_role, role_id)

    def _delete_role(self, role_id: str) -> bool:
        with self._session() as session:
            row = self._role_row(session, role_id)
            if row is None:
                return False
            session.execute(delete(UserRoleRow).where(UserRoleRow.role_id == role_id))
            session.delete(row)
            session.flush()
            return True

    # -------------------------- user roles --------------------------
    async def assign_role(self, user_id: str, role_id: str) -> UserRole:
        ensure_ids(("user_id", user_id), ("role_id", role_id))
        return await self._run(self._assign_role, user_id, role_id)

    def _assign_role(self, user_id: str, role_id: str) -> UserRole:
        with self._session() as session:
            if self._user_row(session, user_id) is None or self._role_row(session, role_id) is None:
                raise ReferentialError(user_id, role_id)
            stmt = select(UserRoleRow).where(UserRoleRow.user_id == user_id, UserRoleRow.role_id == role_id)
            existing = session.execute(stmt).scalar_one_or_none()
            if existing is not None:
                return _to_user_role(existing)
            row = UserRoleRow(user_id=user_id, role_id=role_id, created_at=utc_now())
            session.add(row)
            session.flush()
            return _to_user_role(row)

    async def remove_role(self, user_id: str, role_id: str) -> bool:
        ensure_ids(("user_id", user_id), ("role_id", role_id))
        return await self._run(self._remove_role, user_id, role_id)

    def _remove_role(self, user_id: str, role_id: str) -> bool:
        with self._session() as session:
            result = session.execute(
                delete(UserRoleRow).where(UserRoleRow.user_id == user_id, UserRoleRow.role_id == role_id)
            )
            return (result.rowcount or 0) > 0

    async def get_user_roles(self, user_id: str) -> List[Role]:
        ensure_ids(("user_id", user_id))
        return await self._run(self._roles_of, user_id)

    def _roles_of(self, user_id: str) -> List[Role]:
        with self._session() as session:
            role_ids = select(UserRoleRow.role_id).where(UserRoleRow.user_id == user_id)
            rows = session.execute(select(RoleRow).where(RoleRow.id.in_(role_ids)).order_by(RoleRow.pk))
            return [_to_role(row) for row in rows.scalars().all()]

    async def get_role_users(self, role_id: str) -> List[User]:
        ensure_ids(("role_id", role_id))
        return await self._run(self._users_of, role_id)

    def _users_of(self, role_id: str) -> List[User]:
        with self._session() as session:
            user_ids = select(UserRoleRow.user_id).where(UserRoleRow.role_id == role_id)
            rows = session.execute(select(UserRow).where(UserRow.id.in_(user_ids)).order_by(UserRow.pk))
            return [_to_user(row) for row in rows.scalars().all()]

    # -------------------------- bulk import --------------------------
    async def import_snapshot(self, snapshot: Snapshot) -> Dict[str, int]:
        """Upsert every entity of a snapshot, keeping ids and timestamps."""
        counts = await self._run(self._import_snapshot, snapshot)
        logger.debug("imported snapshot: %s", counts)
        return counts

    def _import_snapshot(self, snapshot: Snapshot) -> Dict[str, int]:
        counts = {"users": 0, "roles": 0, "user_roles": 0}
        with self._session() as session:
            for user in snapshot.users.values():
                row = self._user_row(session, user.id) or UserRow(id=user.id)
                row.username = user.username
                row.email = user.email
                row.password_hash = user.password_hash
                row.tags = dict(user.tags)
                row.created_at = user.created_at
                row.updated_at = user.updated_at
                session.add(row)
                counts["users"] += 1
            for role in snapshot.roles.values():
                row = self._role_row(session, role.id) or RoleRow(id=role.id)
                row.name = role.name
                row.description = role.description
                row.tags = dict(role.tags)
                row.created_at = role.created_at
                row.updated_at = role.updated_at
                session.add(row)
                counts["roles"] += 1
            session.flush()
            for link in snapshot.user_roles.values():
                stmt = select(UserRoleRow).where(
                    UserRoleRow.user_id == link.user_id, UserRoleRow.role_id == link.role_id
                )
                if session.execute(stmt).scalar_one_or_none() is None:
                    session.add(UserRoleRow(user_id=link.user_id, role_id=link.role_id, created_at=link.created_at))
                    counts["user_roles"] += 1
            session.flush()
        return counts

    # -------------------------- transactions --------------------------
    async def begin_transaction(self) -> None:
        self._require_no_transaction()
        if self._sessionmaker is None:
            raise RuntimeError("SQL adapter used before initialize()")
        self._tx = self._sessionmaker()
        self._in_transaction = True
        logger.debug("sql: transaction started")

    async def commit(self) -> None:
        self._require_transaction()
        # a failed commit leaves the session in place for rollback()
        await self._run(self._tx.commit)
        session, self._tx = self._tx, None
        self._in_transaction = False
        await self._run(session.close)
        logger.debug("sql: transaction committed")

    async def rollback(self) -> None:
        self._require_transaction()
        session, self._tx = self._tx, None
        self._in_transaction = False
        await self._run(_discard, session)
        logger.debug("sql: transaction rolled back")
