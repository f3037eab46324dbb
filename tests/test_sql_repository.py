"""
SQL adapter against temporary SQLite databases.
"""
from __future__ import annotations

import asyncio
import importlib.util
from pathlib import Path

import pytest
import pytest_asyncio

from usermgmt.repositories.json_repository import JSONFileRepository
from usermgmt.repositories.sql_repository import SQLRepository

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "migrate_json_to_sql.py"
_location = importlib.util.spec_from_file_location("migrate_json_to_sql", SCRIPT)
migrate_script = importlib.util.module_from_spec(_location)
_location.loader.exec_module(migrate_script)


@pytest_asyncio.fixture()
async def temp_db(tmp_path):
    """SQL adapter on a file database that is disposed after the test."""
    db_file = tmp_path / "test.db"
    repo = SQLRepository({"database_url": f"sqlite:///{db_file}"})
    await repo.initialize()
    yield repo
    await repo.shutdown()


async def test_default_url_lives_in_data_dir(data_dir):
    repo = SQLRepository({"data_dir": str(data_dir)})
    assert repo.database_url == f"sqlite:///{data_dir / 'usermgmt.db'}"
    await repo.initialize()
    await repo.shutdown()
    assert (data_dir / "usermgmt.db").exists()


async def test_state_survives_reopening(temp_db, user_data):
    user = await temp_db.create_user(user_data)
    role = await temp_db.create_role({"name": "Admin", "tags": {"level": 1}})
    await temp_db.assign_role(user.id, role.id)
    url = temp_db.database_url
    await temp_db.shutdown()

    reopened = SQLRepository({"database_url": url})
    await reopened.initialize()
    try:
        assert await reopened.get_user_by_id(user.id) == user
        assert await reopened.get_user_roles(user.id) == [role]
    finally:
        await reopened.shutdown()


async def test_in_memory_database_is_shared_across_sessions():
    repo = SQLRepository({"database_url": "sqlite://"})
    await repo.initialize()
    try:
        role = await repo.create_role({"name": "Admin"})
        assert await repo.get_role_by_id(role.id) == role
    finally:
        await repo.shutdown()


async def test_shutdown_discards_open_transaction(temp_db):
    await temp_db.begin_transaction()
    await temp_db.create_role({"name": "Pending"})
    url = temp_db.database_url
    await temp_db.shutdown()
    assert temp_db.in_transaction is False

    reopened = SQLRepository({"database_url": url})
    await reopened.initialize()
    try:
        assert (await reopened.get_roles()).total == 0
    finally:
        await reopened.shutdown()


async def test_import_snapshot_keeps_ids_and_is_repeatable(temp_db, data_dir, user_data):
    source = JSONFileRepository({"data_dir": str(data_dir)})
    await source.initialize()
    user = await source.create_user(user_data)
    role = await source.create_role({"name": "Admin"})
    await source.assign_role(user.id, role.id)

    counts = await temp_db.import_snapshot(source._live)
    assert counts == {"users": 1, "roles": 1, "user_roles": 1}
    assert await temp_db.get_user_by_id(user.id) == user
    assert await temp_db.get_role_users(role.id) == [user]

    counts = await temp_db.import_snapshot(source._live)
    assert counts["user_roles"] == 0
    assert (await temp_db.get_users()).total == 1


async def test_migration_script_copies_durable_snapshot(data_dir, tmp_path, user_data):
    source = JSONFileRepository({"data_dir": str(data_dir)})
    await source.initialize()
    user = await source.create_user(user_data)
    await source.shutdown()

    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    counts = await migrate_script.migrate(data_dir, url)
    assert counts["users"] == 1

    target = SQLRepository({"database_url": url})
    await target.initialize()
    try:
        assert await target.get_user_by_id(user.id) == user
    finally:
        await target.shutdown()


async def test_concurrent_calls_are_serialized(temp_db):
    await asyncio.gather(*(temp_db.create_role({"name": f"Role {i}"}) for i in range(5)))
    assert (await temp_db.get_roles()).total == 5


async def test_failed_commit_keeps_transaction_open(temp_db, monkeypatch):
    await temp_db.begin_transaction()
    await temp_db.create_role({"name": "Pending"})

    def failing_commit():
        raise RuntimeError("connection lost")

    monkeypatch.setattr(temp_db._tx, "commit", failing_commit)
    with pytest.raises(RuntimeError):
        await temp_db.commit()
    assert temp_db.in_transaction is True

    await temp_db.rollback()
    assert temp_db.in_transaction is False
    assert (await temp_db.get_roles()).total == 0
