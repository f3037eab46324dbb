"""
User use cases: adapter calls wrapped in the user.* hook events.

Pre hooks may rewrite the call's input before it reaches the adapter; post
hooks may rewrite the result before it is returned.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from usermgmt.domain.entities import Role, User
from usermgmt.repositories.base import StorageAdapter
from usermgmt.repositories.query import Page

from .hooks import HookManager


@dataclass
class UserService:
    adapter: StorageAdapter
    hooks: HookManager

    async def create_user(self, user_data: Mapping[str, Any]) -> User:
        pre = await self.hooks.execute_hooks("user.preCreate", {"user_data": user_data})
        user = await self.adapter.create_user(pre.get("user_data"))
        post = await self.hooks.execute_hooks("user.postCreate", {"user": user})
        return post.get("user")

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        pre = await self.hooks.execute_hooks("user.preGet", {"id": user_id})
        user = await self.adapter.get_user_by_id(pre.get("id"))
        post = await self.hooks.execute_hooks("user.postGet", {"user": user})
        return post.get("user")

    async def get_users(self, options: Any = None) -> Page[User]:
        pre = await self.hooks.execute_hooks("user.preGetAll", {"options": options})
        result = await self.adapter.get_users(pre.get("options"))
        post = await self.hooks.execute_hooks("user.postGetAll", {"result": result})
        return post.get("result")

    async def update_user(self, user_id: str, user_data: Mapping[str, Any]) -> Optional[User]:
        pre = await self.hooks.execute_hooks("user.preUpdate", {"id": user_id, "user_data": user_data})
        user = await self.adapter.update_user(pre.get("id"), pre.get("user_data"))
        post = await self.hooks.execute_hooks("user.postUpdate", {"user": user})
        return post.get("user")

    async def delete_user(self, user_id: str) -> bool:
        pre = await self.hooks.execute_hooks("user.preDelete", {"id": user_id})
        result = await self.adapter.delete_user(pre.get("id"))
        post = await self.hooks.execute_hooks("user.postDelete", {"id": pre.get("id"), "result": result})
        return post.get("result")

    async def get_user_roles(self, user_id: str) -> List[Role]:
        pre = await self.hooks.execute_hooks("user.preGetRoles", {"user_id": user_id})
        roles = await self.adapter.get_user_roles(pre.get("user_id"))
        post = await self.hooks.execute_hooks("user.postGetRoles", {"user_id": pre.get("user_id"), "roles": roles})
        return post.get("roles")
