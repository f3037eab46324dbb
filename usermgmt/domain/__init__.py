"""Domain entities and the pure helpers around them (validation, ids)."""

from .entities import Role, Tags, TagValue, User, UserRole
from .ids import generate_id
from .validation import FieldError

__all__ = ["FieldError", "Role", "Tags", "TagValue", "User", "UserRole", "generate_id"]
