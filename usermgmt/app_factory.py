"""
Entry point: the UserManagement facade and its factory function.

A UserManagement session owns its adapter, hook registry and plugin
registry; two sessions never share state.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from usermgmt.core.config import Settings, resolve_settings
from usermgmt.core.errors import NotInitializedError
from usermgmt.domain.entities import UserRole
from usermgmt.repositories.base import StorageAdapter
from usermgmt.services.hooks import Hook, HookCallback, HookFailurePolicy, HookManager
from usermgmt.services.plugins import AdapterFactory, Plugin, PluginManager
from usermgmt.services.role_service import RoleService
from usermgmt.services.user_service import UserService

logger = logging.getLogger(__name__)


class UserManagement:
    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        self._config: Dict[str, Any] = dict(config or {})
        self.plugin_manager = PluginManager()
        self.hook_manager = HookManager(self.settings.hook_failure_policy)
        self.adapter: Optional[StorageAdapter] = None
        self._users: Optional[UserService] = None
        self._roles: Optional[RoleService] = None
        self.initialized = False

    @property
    def settings(self) -> Settings:
        return resolve_settings(self._config)

    # -------------------------- lifecycle --------------------------
    async def initialize(self) -> None:
        if self.initialized:
            return
        settings = self.settings
        options = settings.to_dict()
        adapter = self.plugin_manager.create_adapter(settings.adapter, options)
        await self.plugin_manager.load_all_plugins()
        await adapter.initialize(options)
        self.adapter = adapter
        self._users = UserService(adapter, self.hook_manager)
        self._roles = RoleService(adapter, self.hook_manager)
        self.initialized = True
        logger.debug("user management initialized with %s adapter", settings.adapter)

    async def shutdown(self) -> None:
        if not self.initialized:
            return
        await self.adapter.shutdown()
        await self.plugin_manager.unload_all_plugins()
        self.initialized = False
        self.adapter = None
        self._users = None
        self._roles = None

    def _ensure_initialized(self) -> StorageAdapter:
        if not self.initialized or self.adapter is None:
            raise NotInitializedError("UserManagement not initialized. Call initialize() first.")
        return self.adapter

    @property
    def users(self) -> UserService:
        self._ensure_initialized()
        return self._users

    @property
    def roles(self) -> RoleService:
        self._ensure_initialized()
        return self._roles

    # -------------------------- user roles --------------------------
    async def assign_role(self, user_id: str, role_id: str) -> UserRole:
        adapter = self._ensure_initialized()
        pre = await self.hook_manager.execute_hooks("userRole.preAssign", {"user_id": user_id, "role_id": role_id})
        user_role = await adapter.assign_role(pre.get("user_id"), pre.get("role_id"))
        post = await self.hook_manager.execute_hooks("userRole.postAssign", {"user_role": user_role})
        return post.get("user_role")

    async def remove_role(self, user_id: str, role_id: str) -> bool:
        adapter = self._ensure_initialized()
        pre = await self.hook_manager.execute_hooks("userRole.preRemove", {"user_id": user_id, "role_id": role_id})
        result = await adapter.remove_role(pre.get("user_id"), pre.get("role_id"))
        post = await self.hook_manager.execute_hooks(
            "userRole.postRemove",
            {"user_id": pre.get("user_id"), "role_id": pre.get("role_id"), "result": result},
        )
        return post.get("result")

    # -------------------------- transactions --------------------------
    async def begin_transaction(self) -> None:
        await self._ensure_initialized().begin_transaction()

    async def commit(self) -> None:
        await self._ensure_initialized().commit()

    async def rollback(self) -> None:
        await self._ensure_initialized().rollback()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["UserManagement"]:
        """Commit when the block succeeds, roll back when it or the commit raises."""
        await self.begin_transaction()
        try:
            yield self
            await self.commit()
        except BaseException:
            if self._ensure_initialized().in_transaction:
                await self.rollback()
            raise

    # -------------------------- plugins & hooks --------------------------
    def register_plugin(self, plugin: Plugin) -> None:
        self.plugin_manager.register_plugin(plugin)

    def register_adapter(self, name: str, factory: AdapterFactory) -> None:
        self.plugin_manager.register_adapter(name, factory)

    def register_hook(self, event: str, callback: HookCallback, priority: int = 0) -> Hook:
        return self.hook_manager.register_hook(event, callback, priority)

    def remove_hook(self, event: str, callback: HookCallback) -> bool:
        return self.hook_manager.remove_hook(event, callback)

    def remove_all_hooks(self, event: Optional[str] = None) -> None:
        self.hook_manager.remove_all_hooks(event)

    def get_registered_plugins(self) -> List[str]:
        return self.plugin_manager.get_registered_plugins()

    def get_registered_adapters(self) -> List[str]:
        return self.plugin_manager.get_registered_adapters()

    # -------------------------- config --------------------------
    def update_config(self, config: Mapping[str, Any]) -> None:
        """Takes effect on the next initialize(); the hook policy changes immediately."""
        merged = dict(self._config)
        merged.update(config)
        policy = HookFailurePolicy(resolve_settings(merged).hook_failure_policy)
        self._config = merged
        self.hook_manager.failure_policy = policy

    def get_config(self) -> Dict[str, Any]:
        return dict(self._config)


def create_user_management(config: Optional[Mapping[str, Any]] = None) -> UserManagement:
    return UserManagement(config)


__all__ = ["UserManagement", "create_user_management"]
