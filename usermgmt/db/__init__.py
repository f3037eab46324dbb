"""Database helpers (engine/session builders and models)."""

from .models import RoleRow, UserRoleRow, UserRow
from .session import Base, build_engine, build_sessionmaker

__all__ = ["Base", "RoleRow", "UserRoleRow", "UserRow", "build_engine", "build_sessionmaker"]
