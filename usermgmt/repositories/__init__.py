"""
Persistence adapters.

Each module implements the StorageAdapter contract over one medium
(process memory, a JSON snapshot file, a SQL database). Services depend on
the contract, never on a concrete adapter.
"""

from .base import StorageAdapter
from .json_repository import JSONFileRepository
from .memory_repository import MemoryRepository
from .query import Page, QueryOptions, apply_query
from .snapshot import Snapshot, SnapshotAdapter
from .sql_repository import SQLRepository

__all__ = [
    "JSONFileRepository",
    "MemoryRepository",
    "Page",
    "QueryOptions",
    "SQLRepository",
    "Snapshot",
    "SnapshotAdapter",
    "StorageAdapter",
    "apply_query",
]
