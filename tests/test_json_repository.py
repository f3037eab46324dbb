"""
Durable adapter: snapshot file format, write-through and round-trips.
"""
from __future__ import annotations

import json
from datetime import datetime

import pytest
import pytest_asyncio

from usermgmt import create_user_management
from usermgmt.repositories import json_storage
from usermgmt.repositories.json_repository import JSONFileRepository


@pytest_asyncio.fixture()
async def repo(data_dir):
    repository = JSONFileRepository({"data_dir": str(data_dir)})
    await repository.initialize()
    yield repository


def read_file(repository):
    return json.loads(repository.data_path.read_text(encoding="utf-8"))


async def test_initialize_bootstraps_an_empty_snapshot(repo, data_dir):
    assert repo.data_path == data_dir / "data.json"
    assert read_file(repo) == {"users": [], "roles": [], "userRoles": []}
    assert repo.writes == 1


async def test_every_mutation_outside_a_transaction_rewrites_the_file(repo, user_data):
    user = await repo.create_user(user_data)
    role = await repo.create_role({"name": "Admin", "description": "Administrator role"})
    await repo.assign_role(user.id, role.id)

    doc = read_file(repo)
    assert [u["id"] for u in doc["users"]] == [user.id]
    assert doc["users"][0]["passwordHash"] == "hashed-password"
    assert doc["roles"][0]["description"] == "Administrator role"
    assert doc["userRoles"] == [
        {"userId": user.id, "roleId": role.id, "createdAt": doc["userRoles"][0]["createdAt"]}
    ]
    datetime.fromisoformat(doc["users"][0]["createdAt"])
    assert repo.writes == 4


async def test_no_op_mutations_do_not_write(repo):
    writes = repo.writes
    assert await repo.delete_user("missing") is False
    assert await repo.remove_role("u", "r") is False
    assert repo.writes == writes


async def test_transaction_writes_once_on_commit(repo, user_data):
    writes = repo.writes
    await repo.begin_transaction()
    user = await repo.create_user(user_data)
    role = await repo.create_role({"name": "Admin"})
    await repo.assign_role(user.id, role.id)
    assert repo.writes == writes
    assert read_file(repo)["users"] == []

    await repo.commit()
    assert repo.writes == writes + 1
    assert [u["id"] for u in read_file(repo)["users"]] == [user.id]


async def test_rollback_leaves_file_and_memory_as_before(repo, user_data):
    user = await repo.create_user(user_data)
    before = read_file(repo)

    await repo.begin_transaction()
    await repo.delete_user(user.id)
    await repo.create_role({"name": "Admin"})
    await repo.rollback()

    assert read_file(repo) == before
    assert await repo.get_user_by_id(user.id) == user
    assert (await repo.get_roles()).total == 0


async def test_shutdown_then_initialize_reconstructs_the_same_state(repo, data_dir, user_data):
    user = await repo.create_user(user_data)
    role = await repo.create_role({"name": "Admin", "tags": {"level": 1}})
    link = await repo.assign_role(user.id, role.id)
    await repo.update_user(user.id, {"tags": {"active": False, "score": 2.5}})
    await repo.shutdown()

    reopened = JSONFileRepository()
    await reopened.initialize({"data_dir": str(data_dir)})

    assert await reopened.get_users() == await repo.get_users()
    assert await reopened.get_roles() == await repo.get_roles()
    assert await reopened.get_user_roles(user.id) == [role]
    reloaded_link = await reopened.assign_role(user.id, role.id)
    assert reloaded_link == link
    assert isinstance(reloaded_link.created_at, datetime)
    assert reloaded_link.created_at.tzinfo is not None


async def test_corrupt_file_error_propagates(data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "data.json").write_text("{not json", encoding="utf-8")
    repository = JSONFileRepository({"data_dir": str(data_dir)})
    with pytest.raises(json.JSONDecodeError):
        await repository.initialize()


async def test_reads_files_written_with_zulu_timestamps(data_dir):
    data_dir.mkdir(parents=True)
    doc = {
        "users": [
            {
                "id": "1700000000000-1-1",
                "username": "ana",
                "email": "ana@example.com",
                "createdAt": "2024-01-02T03:04:05.678Z",
                "updatedAt": "2024-01-02T03:04:05.678Z",
            }
        ],
        "roles": [],
        "userRoles": [],
    }
    (data_dir / "data.json").write_text(json.dumps(doc), encoding="utf-8")

    repository = JSONFileRepository({"data_dir": str(data_dir)})
    await repository.initialize()
    user = await repository.get_user_by_id("1700000000000-1-1")
    assert user.created_at.year == 2024
    assert user.tags == {}
    assert user.password_hash is None


async def test_data_dir_defaults_to_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("USERMGMT_DATA_DIR", str(tmp_path / "from-env"))
    repository = JSONFileRepository()
    assert repository.data_path == tmp_path / "from-env" / "data.json"


real_save = json_storage.save


def failing_save(path, db):
    raise OSError("disk full")


async def test_failed_write_leaves_memory_unchanged(repo, user_data, monkeypatch):
    user = await repo.create_user(user_data)
    before = read_file(repo)
    monkeypatch.setattr(json_storage, "save", failing_save)

    with pytest.raises(OSError):
        await repo.create_user({"username": "other", "email": "other@example.com"})
    with pytest.raises(OSError):
        await repo.update_user(user.id, {"username": "renamed"})
    with pytest.raises(OSError):
        await repo.delete_user(user.id)

    assert (await repo.get_users()).total == 1
    assert await repo.get_user_by_id(user.id) == user
    assert read_file(repo) == before

    monkeypatch.setattr(json_storage, "save", real_save)
    await repo.create_role({"name": "Admin"})
    assert [u["id"] for u in read_file(repo)["users"]] == [user.id]


async def test_failed_commit_keeps_transaction_open(repo, user_data, monkeypatch):
    await repo.begin_transaction()
    await repo.create_user(user_data)
    monkeypatch.setattr(json_storage, "save", failing_save)

    with pytest.raises(OSError):
        await repo.commit()
    assert repo.in_transaction is True

    await repo.rollback()
    assert (await repo.get_users()).total == 0
    assert read_file(repo)["users"] == []


async def test_transaction_block_rolls_back_when_commit_fails(data_dir, user_data, monkeypatch):
    um = create_user_management({"adapter": "durable", "data_dir": str(data_dir)})
    await um.initialize()
    monkeypatch.setattr(json_storage, "save", failing_save)

    with pytest.raises(OSError):
        async with um.transaction():
            await um.users.create_user(user_data)

    assert um.adapter.in_transaction is False
    assert (await um.users.get_users()).total == 0
    monkeypatch.setattr(json_storage, "save", real_save)
    await um.shutdown()
