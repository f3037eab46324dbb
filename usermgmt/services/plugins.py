"""
Plugin bookkeeping and the adapter factory registry.

Adapters are looked up by name; "volatile", "durable" and "sql" are
registered on construction. A factory is any callable taking the options
mapping and returning a StorageAdapter (adapter classes qualify).
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from usermgmt.core.errors import AdapterNotFoundError, AdapterRegistrationError, PluginError
from usermgmt.repositories.base import StorageAdapter
from usermgmt.repositories.json_repository import JSONFileRepository
from usermgmt.repositories.memory_repository import MemoryRepository
from usermgmt.repositories.sql_repository import SQLRepository

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[Optional[Mapping[str, Any]]], StorageAdapter]

BUILTIN_ADAPTERS: Dict[str, AdapterFactory] = {
    "volatile": MemoryRepository,
    "durable": JSONFileRepository,
    "sql": SQLRepository,
}


@runtime_checkable
class Plugin(Protocol):
    name: str
    version: str

    def initialize(self) -> Any: ...

    def shutdown(self) -> Any: ...


async def _call(fn: Callable[[], Any]) -> None:
    result = fn()
    if inspect.isawaitable(result):
        await result


class PluginManager:
    def __init__(self) -> None:
        self._plugins: Dict[str, Plugin] = {}
        self._adapters: Dict[str, AdapterFactory] = {}
        for name, factory in BUILTIN_ADAPTERS.items():
            self.register_adapter(name, factory)

    # -------------------------- adapters --------------------------
    def register_adapter(self, name: str, factory: AdapterFactory) -> None:
        if name in self._adapters:
            raise AdapterRegistrationError(f'Adapter "{name}" already registered')
        if not callable(factory):
            raise AdapterRegistrationError(f'Adapter "{name}" factory must be callable')
        self._adapters[name] = factory

    def get_adapter(self, name: str) -> AdapterFactory:
        factory = self._adapters.get(name)
        if factory is None:
            raise AdapterNotFoundError(f'Adapter "{name}" not found')
        return factory

    def create_adapter(self, name: str, options: Optional[Mapping[str, Any]] = None) -> StorageAdapter:
        adapter = self.get_adapter(name)(dict(options or {}))
        if not isinstance(adapter, StorageAdapter):
            raise AdapterRegistrationError(f'Adapter "{name}" did not build a StorageAdapter')
        return adapter

    def get_registered_adapters(self) -> List[str]:
        return list(self._adapters)

    # -------------------------- plugins --------------------------
    def register_plugin(self, plugin: Plugin) -> None:
        if plugin.name in self._plugins:
            raise PluginError(f'Plugin "{plugin.name}" already registered')
        self._plugins[plugin.name] = plugin

    async def load_plugin(self, name: str) -> None:
        plugin = self._plugins.get(name)
        if plugin is None:
            raise PluginError(f'Plugin "{name}" not found')
        try:
            await _call(plugin.initialize)
        except Exception as exc:
            raise PluginError(f'Failed to initialize plugin "{name}": {exc}') from exc
        logger.debug("plugin %s %s loaded", plugin.name, plugin.version)

    async def unload_plugin(self, name: str) -> None:
        plugin = self._plugins.get(name)
        if plugin is None:
            raise PluginError(f'Plugin "{name}" not found')
        try:
            await _call(plugin.shutdown)
        except Exception as exc:
            raise PluginError(f'Failed to unload plugin "{name}": {exc}') from exc
        del self._plugins[name]
        logger.debug("plugin %s unloaded", name)

    async def load_all_plugins(self) -> None:
        for name in list(self._plugins):
            await self.load_plugin(name)

    async def unload_all_plugins(self) -> None:
        for name in list(self._plugins):
            await self.unload_plugin(name)

    def get_registered_plugins(self) -> List[str]:
        return list(self._plugins)
