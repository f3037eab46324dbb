"""Volatile adapter: process memory only, nothing survives shutdown."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .snapshot import Snapshot, SnapshotAdapter

logger = logging.getLogger(__name__)


class MemoryRepository(SnapshotAdapter):
    name = "volatile"
    copy_on_write = False

    async def _persist(self, snapshot: Snapshot) -> None:
        return None

    async def initialize(self, config: Optional[Mapping[str, Any]] = None) -> None:
        logger.debug("volatile adapter ready")

    async def shutdown(self) -> None:
        logger.debug("volatile adapter shut down")
