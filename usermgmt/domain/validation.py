"""Field-level validation for users, roles, tags and identifiers."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .entities import READONLY_FIELDS, ROLE_FIELDS, USER_FIELDS

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
SORT_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


def _unknown_fields(data: Mapping[str, Any], allowed: tuple) -> List[FieldError]:
    errors = []
    for key in data:
        if key in READONLY_FIELDS:
            errors.append(FieldError(key, f"{key} is managed by the store and cannot be set"))
        elif key not in allowed:
            errors.append(FieldError(key, f"Unknown field {key!r}"))
    return errors


def _required_string(data: Mapping[str, Any], key: str, label: str) -> Optional[FieldError]:
    value = data.get(key)
    if value is None or value == "":
        return FieldError(key, f"{label} is required")
    if not isinstance(value, str):
        return FieldError(key, f"{label} must be a string")
    if not value.strip():
        return FieldError(key, f"{label} is required")
    return None


def _optional_string(data: Mapping[str, Any], key: str, label: str) -> Optional[FieldError]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        return FieldError(key, f"{label} must be a string")
    return None


def validate_tags(tags: Any) -> List[FieldError]:
    """Tags must map string keys to str, int, float or bool values."""
    if tags is None:
        return []
    if not isinstance(tags, Mapping):
        return [FieldError("tags", "Tags must be an object")]
    errors = []
    for key, value in tags.items():
        if not isinstance(key, str):
            errors.append(FieldError("tags", "Tag keys must be strings"))
        elif not isinstance(value, (str, int, float, bool)):
            errors.append(FieldError(f"tags.{key}", "Tag values must be string, number, or boolean"))
    return errors


def validate_user(data: Mapping[str, Any], *, strict_fields: bool = True) -> List[FieldError]:
    """Validate a complete user record (create input or merged update)."""
    errors: List[FieldError] = _unknown_fields(data, USER_FIELDS) if strict_fields else []
    username_error = _required_string(data, "username", "Username")
    if username_error:
        errors.append(username_error)

    email_error = _required_string(data, "email", "Email")
    if email_error:
        errors.append(email_error)
    elif not EMAIL_PATTERN.fullmatch(data["email"]):
        errors.append(FieldError("email", "Email is not valid"))

    hash_error = _optional_string(data, "password_hash", "Password hash")
    if hash_error:
        errors.append(hash_error)
    errors.extend(validate_tags(data.get("tags")))
    return errors


def validate_role(data: Mapping[str, Any], *, strict_fields: bool = True) -> List[FieldError]:
    errors: List[FieldError] = _unknown_fields(data, ROLE_FIELDS) if strict_fields else []
    name_error = _required_string(data, "name", "Role name")
    if name_error:
        errors.append(name_error)
    description_error = _optional_string(data, "description", "Description")
    if description_error:
        errors.append(description_error)
    errors.extend(validate_tags(data.get("tags")))
    return errors


def validate_changes(changes: Any, allowed: tuple) -> List[FieldError]:
    """Reject partial updates that are not mappings or touch unknown/store-owned fields."""
    if not isinstance(changes, Mapping):
        return [FieldError("data", "Update payload must be an object")]
    return _unknown_fields(changes, allowed)


def validate_id(value: Any, field: str = "id") -> Optional[FieldError]:
    if value is None or value == "":
        return FieldError(field, "ID is required")
    if not isinstance(value, str):
        return FieldError(field, "ID must be a string")
    if not value.strip():
        return FieldError(field, "ID is required")
    return None


def _non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_query_options(options: Any) -> List[FieldError]:
    """Check the shape of a query options mapping (filter, sort, limit, offset)."""
    if options is None:
        return []
    if not isinstance(options, Mapping):
        return [FieldError("options", "Query options must be an object")]
    errors = []
    unknown = set(options) - {"filter", "sort", "limit", "offset"}
    for key in sorted(unknown):
        errors.append(FieldError("options", f"Unknown query option {key!r}"))

    filter_ = options.get("filter")
    if filter_ is not None and not isinstance(filter_, Mapping):
        errors.append(FieldError("options", "filter must be an object"))

    sort = options.get("sort")
    if sort is not None:
        pairs = list(sort.items()) if isinstance(sort, Mapping) else sort
        try:
            for name, direction in pairs:
                if not isinstance(name, str) or direction not in SORT_DIRECTIONS:
                    errors.append(FieldError("options", f"Invalid sort key {name!r}: {direction!r}"))
        except (TypeError, ValueError):
            errors.append(FieldError("options", "sort must be a mapping or a list of (field, direction) pairs"))

    limit = options.get("limit")
    if limit is not None and not _non_negative_int(limit):
        errors.append(FieldError("options", "limit must be a non-negative integer"))
    offset = options.get("offset")
    if offset is not None and not _non_negative_int(offset):
        errors.append(FieldError("options", "offset must be a non-negative integer"))
    return errors
