"""
High-level use cases for usermgmt.

Services orchestrate a storage adapter and the hook engine. The facade calls
these services instead of talking to adapters directly.
"""

from .hooks import Hook, HookFailure, HookFailurePolicy, HookManager
from .plugins import Plugin, PluginManager
from .role_service import RoleService
from .user_service import UserService

__all__ = [
    "Hook",
    "HookFailure",
    "HookFailurePolicy",
    "HookManager",
    "Plugin",
    "PluginManager",
    "RoleService",
    "UserService",
]
