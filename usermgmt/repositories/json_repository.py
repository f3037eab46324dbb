"""
Durable adapter: the whole state lives in one JSON snapshot file.

Every mutation outside a transaction rewrites the file before the change
becomes visible in memory, so a failed write changes nothing. Inside a
transaction nothing is written until commit, which writes exactly once.
File I/O is pushed to a worker thread so the event loop is free while the
disk works.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from usermgmt.core.config import resolve_settings

from . import json_storage
from .snapshot import Snapshot, SnapshotAdapter

logger = logging.getLogger(__name__)


class JSONFileRepository(SnapshotAdapter):
    name = "durable"

    def __init__(self, options: Optional[Mapping[str, Any]] = None):
        super().__init__(options)
        self.data_dir = Path(resolve_settings(self.options).data_dir)
        self.writes = 0

    @property
    def data_path(self) -> Path:
        return self.data_dir / json_storage.DATA_FILENAME

    async def initialize(self, config: Optional[Mapping[str, Any]] = None) -> None:
        if config and config.get("data_dir"):
            self.data_dir = Path(config["data_dir"])
        await asyncio.to_thread(self.data_dir.mkdir, parents=True, exist_ok=True)
        raw = await asyncio.to_thread(json_storage.load, self.data_path)
        if raw is None:
            logger.debug("no snapshot at %s, bootstrapping an empty one", self.data_path)
            self._live = Snapshot()
            await self._persist(self._live)
            return
        self._live = Snapshot.from_dict(raw)
        logger.debug(
            "loaded %s (%d users, %d roles, %d user roles)",
            self.data_path,
            len(self._live.users),
            len(self._live.roles),
            len(self._live.user_roles),
        )

    async def shutdown(self) -> None:
        await self._persist(self._live)
        logger.debug("durable adapter flushed %s", self.data_path)

    async def _persist(self, snapshot: Snapshot) -> None:
        await asyncio.to_thread(json_storage.save, self.data_path, snapshot.to_dict())
        self.writes += 1
