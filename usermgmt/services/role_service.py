"""Role use cases: adapter calls wrapped in the role.* hook events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from usermgmt.domain.entities import Role, User
from usermgmt.repositories.base import StorageAdapter
from usermgmt.repositories.query import Page

from .hooks import HookManager


@dataclass
class RoleService:
    adapter: StorageAdapter
    hooks: HookManager

    async def create_role(self, role_data: Mapping[str, Any]) -> Role:
        pre = await self.hooks.execute_hooks("role.preCreate", {"role_data": role_data})
        role = await self.adapter.create_role(pre.get("role_data"))
        post = await self.hooks.execute_hooks("role.postCreate", {"role": role})
        return post.get("role")

    async def get_role_by_id(self, role_id: str) -> Optional[Role]:
        pre = await self.hooks.execute_hooks("role.preGet", {"id": role_id})
        role = await self.adapter.get_role_by_id(pre.get("id"))
        post = await self.hooks.execute_hooks("role.postGet", {"role": role})
        return post.get("role")

    async def get_roles(self, options: Any = None) -> Page[Role]:
        pre = await self.hooks.execute_hooks("role.preGetAll", {"options": options})
        result = await self.adapter.get_roles(pre.get("options"))
        post = await self.hooks.execute_hooks("role.postGetAll", {"result": result})
        return post.get("result")

    async def update_role(self, role_id: str, role_data: Mapping[str, Any]) -> Optional[Role]:
        pre = await self.hooks.execute_hooks("role.preUpdate", {"id": role_id, "role_data": role_data})
        role = await self.adapter.update_role(pre.get("id"), pre.get("role_data"))
        post = await self.hooks.execute_hooks("role.postUpdate", {"role": role})
        return post.get("role")

    async def delete_role(self, role_id: str) -> bool:
        pre = await self.hooks.execute_hooks("role.preDelete", {"id": role_id})
        result = await self.adapter.delete_role(pre.get("id"))
        post = await self.hooks.execute_hooks("role.postDelete", {"id": pre.get("id"), "result": result})
        return post.get("result")

    async def get_role_users(self, role_id: str) -> List[User]:
        pre = await self.hooks.execute_hooks("role.preGetUsers", {"role_id": role_id})
        users = await self.adapter.get_role_users(pre.get("role_id"))
        post = await self.hooks.execute_hooks("role.postGetUsers", {"role_id": pre.get("role_id"), "users": users})
        return post.get("users")
