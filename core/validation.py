"""Field validation for tasks, categories and users.

Each ``clean_*`` helper returns the normalized value and records problems in a
shared :class:`FieldErrors` so one call can report every bad field at once.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from core.errors import ValidationError
from core.settings import CATEGORIES, TASKS, USERS
from utils.datetime_utils import parse_timestamp

COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class FieldErrors:
    def __init__(self) -> None:
        self._items: List[Dict[str, str]] = []

    def add(self, field: str, message: str) -> None:
        self._items.append({"field": field, "message": message})

    def __bool__(self) -> bool:
        return bool(self._items)

    def raise_if_any(self, message: str = "Validation error") -> None:
        if self._items:
            # surface the first problem in the summary line
            first = self._items[0]["message"] if len(self._items) == 1 else message
            raise ValidationError(first, details=list(self._items))


def clean_title(value: Any, errors: FieldErrors) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        errors.add("title", "Task title is required")
        return None
    title = value.strip()
    if len(title) > TASKS.title_max_length:
        errors.add("title", f"Title cannot exceed {TASKS.title_max_length} characters")
        return None
    return title


def clean_description(value: Any, errors: FieldErrors) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        errors.add("description", "Description must be a string")
        return None
    return value.strip() or None


def clean_tags(value: Any, errors: FieldErrors) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, Iterable):
        errors.add("tags", "Tags must be a list of strings")
        return []
    tags: List[str] = []
    for item in value:
        if not isinstance(item, str):
            errors.add("tags", "Tags must be a list of strings")
            return []
        tag = item.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def clean_estimated_hours(value: Any, errors: FieldErrors) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        errors.add("estimatedHours", "Estimated hours must be a number")
        return None
    if value < 0:
        errors.add("estimatedHours", "Estimated hours cannot be negative")
        return None
    return float(value)


def clean_due_date(
    value: Any,
    errors: FieldErrors,
    *,
    not_before: Optional[datetime] = None,
) -> Optional[datetime]:
    """Parse ``dueDate``; with ``not_before`` the date must be strictly later."""
    try:
        due = parse_timestamp(value)
    except ValueError:
        errors.add("dueDate", "Due date must be a valid timestamp")
        return None
    if due is not None and not_before is not None and due <= not_before:
        errors.add("dueDate", "Due date must be in the future")
        return None
    return due


def clean_reference(value: Any, field: str, errors: FieldErrors) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        errors.add(field, f"{field} must be a non-empty identifier")
        return None
    return value.strip()


def clean_category_name(value: Any, errors: FieldErrors) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        errors.add("name", "Category name is required")
        return None
    name = value.strip()
    if len(name) > CATEGORIES.name_max_length:
        errors.add("name", f"Category name cannot exceed {CATEGORIES.name_max_length} characters")
        return None
    return name


def clean_color(value: Any, errors: FieldErrors) -> Optional[str]:
    if value is None:
        return CATEGORIES.default_color
    if not isinstance(value, str) or not COLOR_RE.match(value.strip()):
        errors.add("color", "Please enter a valid hex color")
        return None
    return value.strip().upper()


def clean_username(value: Any, errors: FieldErrors) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        errors.add("username", "Username is required")
        return None
    username = value.strip()
    if len(username) > USERS.username_max_length:
        errors.add("username", f"Username cannot exceed {USERS.username_max_length} characters")
        return None
    return username


def clean_email(value: Any, errors: FieldErrors) -> Optional[str]:
    if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
        errors.add("email", "Please enter a valid email")
        return None
    return value.strip().lower()


__all__ = [
    "COLOR_RE",
    "FieldErrors",
    "clean_category_name",
    "clean_color",
    "clean_description",
    "clean_due_date",
    "clean_email",
    "clean_estimated_hours",
    "clean_reference",
    "clean_tags",
    "clean_title",
    "clean_username",
]
