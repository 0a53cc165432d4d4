"""Task priority values."""
from __future__ import annotations

from enum import Enum
from typing import Dict

from core.errors import ValidationError


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# rank drives ordering when sorting by priority: low < medium < high
PRIORITY_RANK: Dict[Priority, int] = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
}


def parse_priority(value: object, *, field: str = "priority") -> Priority:
    """Validate an external value against the three-value enum."""
    if isinstance(value, Priority):
        return value
    if isinstance(value, str):
        try:
            return Priority(value)
        except ValueError:
            pass
    raise ValidationError(
        "Invalid priority value",
        details=[{"field": field, "message": f"must be one of {', '.join(p.value for p in Priority)}"}],
    )


def priority_rank(value: Priority | str) -> int:
    return PRIORITY_RANK[Priority(value)]


__all__ = [
    "PRIORITY_RANK",
    "Priority",
    "parse_priority",
    "priority_rank",
]
