"""
usermgmt: storage-agnostic persistence for users, roles and their links.

Typical use::

    um = create_user_management({"adapter": "durable", "data_dir": "./data"})
    await um.initialize()
    user = await um.users.create_user({"username": "ana", "email": "ana@example.com"})
"""

from usermgmt.app_factory import UserManagement, create_user_management
from usermgmt.core.errors import (
    AdapterNotFoundError,
    AdapterRegistrationError,
    NotInitializedError,
    PluginError,
    ReferentialError,
    TransactionStateError,
    UserManagementError,
    ValidationError,
)
from usermgmt.domain.entities import Role, User, UserRole
from usermgmt.repositories import (
    JSONFileRepository,
    MemoryRepository,
    Page,
    QueryOptions,
    SQLRepository,
    StorageAdapter,
)
from usermgmt.services import HookFailurePolicy, HookManager, PluginManager

__all__ = [
    "AdapterNotFoundError",
    "AdapterRegistrationError",
    "HookFailurePolicy",
    "HookManager",
    "JSONFileRepository",
    "MemoryRepository",
    "NotInitializedError",
    "Page",
    "PluginError",
    "PluginManager",
    "QueryOptions",
    "ReferentialError",
    "Role",
    "SQLRepository",
    "StorageAdapter",
    "TransactionStateError",
    "User",
    "UserManagement",
    "UserManagementError",
    "UserRole",
    "ValidationError",
    "create_user_management",
]
