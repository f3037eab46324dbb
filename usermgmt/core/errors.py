"""
Exception hierarchy for the persistence layer.

Not-found is never an exception: single reads return None and deletes or
association removals return False.
"""

from __future__ import annotations

from typing import Iterable, List

from usermgmt.domain.validation import FieldError


class UserManagementError(Exception):
    """Base class for every error raised by usermgmt."""


class ValidationError(UserManagementError):
    """Malformed or missing input. Nothing was persisted."""

    def __init__(self, errors: Iterable[FieldError]):
        self.errors: List[FieldError] = list(errors)
        message = ", ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(f"Validation failed: {message}")

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class ReferentialError(UserManagementError):
    """An association references a user or role that does not exist."""

    def __init__(self, user_id: str, role_id: str):
        super().__init__(f"User or role not found (user_id={user_id!r}, role_id={role_id!r})")
        self.user_id = user_id
        self.role_id = role_id


class TransactionStateError(UserManagementError):
    pass


class AdapterNotFoundError(UserManagementError):
    pass


class AdapterRegistrationError(UserManagementError):
    pass


class PluginError(UserManagementError):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotInitializedError(UserManagementError):
    pass
