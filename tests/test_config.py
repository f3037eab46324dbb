from __future__ import annotations

from pathlib import Path

import pytest

from usermgmt.core import config as core_config
from usermgmt.core.errors import AdapterNotFoundError, AdapterRegistrationError
from usermgmt.repositories.memory_repository import MemoryRepository
from usermgmt.services.plugins import PluginManager


def test_defaults_without_environment():
    settings = core_config.get_settings()
    assert settings.adapter == "volatile"
    assert settings.data_dir == Path.cwd() / ".user-management-data"
    assert settings.hook_failure_policy == "swallow"
    assert settings.resolved_database_url.endswith("usermgmt.db")


def test_environment_is_read(monkeypatch, tmp_path):
    monkeypatch.setenv("USERMGMT_ADAPTER", "Durable")
    monkeypatch.setenv("USERMGMT_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("USERMGMT_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("USERMGMT_HOOK_POLICY", "collect")
    core_config.get_settings.cache_clear()

    settings = core_config.get_settings()
    assert settings.adapter == "durable"
    assert settings.data_dir == tmp_path
    assert settings.resolved_database_url == "sqlite://"
    assert settings.hook_failure_policy == "collect"


def test_overrides_keep_unknown_keys_as_extra(tmp_path):
    settings = core_config.resolve_settings({"data_dir": tmp_path, "adapter": None, "pool": 5})
    assert settings.data_dir == tmp_path
    assert settings.adapter == "volatile"
    assert settings.extra == {"pool": 5}
    assert settings.to_dict()["pool"] == 5


def test_builtin_adapters_are_registered():
    plugins = PluginManager()
    assert plugins.get_registered_adapters() == ["volatile", "durable", "sql"]
    assert isinstance(plugins.create_adapter("volatile"), MemoryRepository)


def test_adapter_registry_rejects_duplicates_and_unknown_names():
    plugins = PluginManager()
    with pytest.raises(AdapterRegistrationError):
        plugins.register_adapter("volatile", MemoryRepository)
    with pytest.raises(AdapterNotFoundError):
        plugins.get_adapter("nope")


def test_factory_must_build_an_adapter():
    plugins = PluginManager()
    plugins.register_adapter("broken", lambda options: object())
    with pytest.raises(AdapterRegistrationError):
        plugins.create_adapter("broken")
