"""
JSON snapshot file helpers used by the durable adapter.

The file holds one document with three arrays (users, roles, userRoles).
Writes replace the whole file atomically so readers never see a partial
document.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
import json
import os
import tempfile

DATA_FILENAME = "data.json"
COLLECTIONS = ("users", "roles", "userRoles")


def load(path: Path) -> Optional[dict]:
    """Return the decoded document, or None when the file does not exist yet."""
    try:
        with path.open("r", encoding="utf-8") as f:
            return db_defaults(json.load(f))
    except FileNotFoundError:
        return None


def save(path: Path, db: dict) -> None:
    payload = json.dumps(db, ensure_ascii=False, indent=2)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def db_defaults(db: dict) -> dict:
    if not isinstance(db, dict):
        raise ValueError("Snapshot file must contain a JSON object")
    for name in COLLECTIONS:
        db.setdefault(name, [])
    return db
