"""
Storage adapter contract.

Every backend implements this interface. Operations are coroutines: the
durable and SQL adapters suspend on I/O, the volatile adapter never does.
One instance serves one logical writer; at most one transaction may be open
on an instance at any time. A commit that raises leaves the transaction open
and the committed state as it was; the caller ends it with rollback().
"""

from __future__ import annotations

import abc
from typing import Any, List, Mapping, Optional, Sequence

from usermgmt.core.errors import TransactionStateError, ValidationError
from usermgmt.domain.entities import Role, User, UserRole
from usermgmt.domain.validation import validate_id

from .query import Page, QueryOptions


def ensure_ids(*pairs: Sequence[Any]) -> None:
    """Validate ``(field, value)`` identifier pairs before touching storage."""
    errors = []
    for field, value in pairs:
        error = validate_id(value, field)
        if error:
            errors.append(error)
    if errors:
        raise ValidationError(errors)


class StorageAdapter(abc.ABC):
    """CRUD for users and roles, association management, transactions, lifecycle."""

    name = "abstract"

    def __init__(self, options: Optional[Mapping[str, Any]] = None):
        self.options = dict(options or {})
        self._in_transaction = False

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def _require_transaction(self) -> None:
        if not self._in_transaction:
            raise TransactionStateError("No transaction in progress")

    def _require_no_transaction(self) -> None:
        if self._in_transaction:
            raise TransactionStateError("Transaction already in progress")

    # -------------------------- users --------------------------
    @abc.abstractmethod
    async def create_user(self, data: Mapping[str, Any]) -> User: ...

    @abc.abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def get_users(self, options: Any = None) -> Page[User]: ...

    @abc.abstractmethod
    async def update_user(self, user_id: str, changes: Mapping[str, Any]) -> Optional[User]: ...

    @abc.abstractmethod
    async def delete_user(self, user_id: str) -> bool: ...

    # -------------------------- roles --------------------------
    @abc.abstractmethod
    async def create_role(self, data: Mapping[str, Any]) -> Role: ...

    @abc.abstractmethod
    async def get_role_by_id(self, role_id: str) -> Optional[Role]: ...

    @abc.abstractmethod
    async def get_roles(self, options: Any = None) -> Page[Role]: ...

    @abc.abstractmethod
    async def update_role(self, role_id: str, changes: Mapping[str, Any]) -> Optional[Role]: ...

    @abc.abstractmethod
    async def delete_role(self, role_id: str) -> bool: ...

    # -------------------------- user roles --------------------------
    @abc.abstractmethod
    async def assign_role(self, user_id: str, role_id: str) -> UserRole: ...

    @abc.abstractmethod
    async def remove_role(self, user_id: str, role_id: str) -> bool: ...

    @abc.abstractmethod
    async def get_user_roles(self, user_id: str) -> List[Role]: ...

    @abc.abstractmethod
    async def get_role_users(self, role_id: str) -> List[User]: ...

    # -------------------------- transactions --------------------------
    @abc.abstractmethod
    async def begin_transaction(self) -> None: ...

    @abc.abstractmethod
    async def commit(self) -> None: ...

    @abc.abstractmethod
    async def rollback(self) -> None: ...

    # -------------------------- lifecycle --------------------------
    @abc.abstractmethod
    async def initialize(self, config: Optional[Mapping[str, Any]] = None) -> None: ...

    @abc.abstractmethod
    async def shutdown(self) -> None: ...


__all__ = ["Page", "QueryOptions", "StorageAdapter", "ensure_ids"]
