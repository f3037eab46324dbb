"""
Configuration helpers for usermgmt.

Settings come from environment variables; a config mapping handed to the
facade or to an adapter's initialize() overrides them key by key. Keys this
module does not recognise are kept in ``extra`` so adapter-specific options
still reach the adapter.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional
import os

DEFAULT_DATA_DIRNAME = ".user-management-data"
RECOGNIZED_KEYS = ("adapter", "data_dir", "database_url", "hook_failure_policy")


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables and config overrides."""

    adapter: str
    data_dir: Path
    database_url: str
    hook_failure_policy: str
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / 'usermgmt.db'}"

    def with_overrides(self, config: Optional[Mapping[str, Any]]) -> "Settings":
        """Apply a config mapping on top of these settings."""
        if not config:
            return self
        values: dict = {}
        extra = dict(self.extra)
        for key, value in config.items():
            if key not in RECOGNIZED_KEYS:
                extra[key] = value
            elif value is None:
                continue
            elif key == "data_dir":
                values["data_dir"] = Path(value)
            elif key == "hook_failure_policy":
                values[key] = str(getattr(value, "value", value)).strip().lower()
            else:
                values[key] = str(value).strip()
        return replace(self, extra=extra, **values)

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update(
            adapter=self.adapter,
            data_dir=str(self.data_dir),
            database_url=self.database_url,
            hook_failure_policy=self.hook_failure_policy,
        )
        return data


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    data_dir = (os.getenv("USERMGMT_DATA_DIR") or "").strip()
    return Settings(
        adapter=(os.getenv("USERMGMT_ADAPTER") or "volatile").strip().lower(),
        data_dir=Path(data_dir) if data_dir else Path.cwd() / DEFAULT_DATA_DIRNAME,
        database_url=(os.getenv("USERMGMT_DATABASE_URL") or "").strip(),
        hook_failure_policy=(os.getenv("USERMGMT_HOOK_POLICY") or "swallow").strip().lower(),
    )


def resolve_settings(config: Optional[Mapping[str, Any]] = None) -> Settings:
    return get_settings().with_overrides(config)
