from __future__ import annotations

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# make the usermgmt package importable during local test runs
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from usermgmt.core import config as core_config
from usermgmt.services.plugins import BUILTIN_ADAPTERS

ENV_VARS = ("USERMGMT_ADAPTER", "USERMGMT_DATA_DIR", "USERMGMT_DATABASE_URL", "USERMGMT_HOOK_POLICY")


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isolate each test from the caller's environment and the settings cache."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    core_config.get_settings.cache_clear()
    yield
    core_config.get_settings.cache_clear()


@pytest.fixture()
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest_asyncio.fixture(params=sorted(BUILTIN_ADAPTERS))
async def adapter(request, data_dir):
    """Every built-in adapter, initialized against a temporary directory."""
    repo = BUILTIN_ADAPTERS[request.param]({"data_dir": str(data_dir)})
    await repo.initialize()
    yield repo
    if repo.in_transaction:
        await repo.rollback()
    await repo.shutdown()


@pytest.fixture()
def user_data():
    return {
        "username": "testuser",
        "email": "test@example.com",
        "password_hash": "hashed-password",
        "tags": {"active": True},
    }
