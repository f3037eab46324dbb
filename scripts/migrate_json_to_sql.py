#!/usr/bin/env python3
"""
One-off migration: durable snapshot (data.json) -> SQL database.

Ids, timestamps and user/role links are kept as they are in the file.

Usage:
  python scripts/migrate_json_to_sql.py --data-dir ./.user-management-data [--database-url sqlite:///users.db]
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# make the usermgmt package importable when run directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from usermgmt.core.config import resolve_settings
from usermgmt.repositories import json_storage
from usermgmt.repositories.snapshot import Snapshot
from usermgmt.repositories.sql_repository import SQLRepository


def _load_snapshot(data_dir: Path) -> Snapshot:
    path = data_dir / json_storage.DATA_FILENAME
    raw = json_storage.load(path)
    if raw is None:
        raise SystemExit(f"Snapshot file not found: {path}")
    return Snapshot.from_dict(raw)


async def migrate(data_dir: Path, database_url: str) -> dict:
    snapshot = _load_snapshot(data_dir)
    repo = SQLRepository({"data_dir": str(data_dir), "database_url": database_url})
    await repo.initialize()
    try:
        return await repo.import_snapshot(snapshot)
    finally:
        await repo.shutdown()


def main(argv: list[str] | None = None) -> None:
    settings = resolve_settings()
    ap = argparse.ArgumentParser(description="Copy a durable JSON snapshot into a SQL database")
    ap.add_argument("--data-dir", default=str(settings.data_dir), help="Directory holding data.json")
    ap.add_argument("--database-url", default=settings.database_url, help="SQLAlchemy URL (default: sqlite file in data dir)")
    args = ap.parse_args(argv)

    counts = asyncio.run(migrate(Path(args.data_dir), args.database_url))
    print("OK: snapshot migrated")
    print(f"  users: {counts['users']}")
    print(f"  roles: {counts['roles']}")
    print(f"  user roles: {counts['user_roles']}")


if __name__ == "__main__":
    main()
