"""Task status state machine.

The transition table below is the single source of truth for which status
changes are allowed. ``completed_at`` is set exactly when a task enters
``completed`` and cleared for every other resulting status.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from core.errors import InvalidTransition, ValidationError
from utils.datetime_utils import utc_now


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"


INITIAL_STATUS = TaskStatus.TODO

TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.TODO: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.ARCHIVED}),
    TaskStatus.IN_PROGRESS: frozenset(
        {TaskStatus.TODO, TaskStatus.COMPLETED, TaskStatus.ARCHIVED}
    ),
    TaskStatus.COMPLETED: frozenset({TaskStatus.TODO, TaskStatus.ARCHIVED}),
    TaskStatus.ARCHIVED: frozenset({TaskStatus.TODO}),
}

# listing order when sorting by status
STATUS_ORDER: Tuple[TaskStatus, ...] = (
    TaskStatus.TODO,
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
    TaskStatus.ARCHIVED,
)


def parse_status(value: object, *, field: str = "status") -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    if isinstance(value, str):
        try:
            return TaskStatus(value)
        except ValueError:
            pass
    raise ValidationError(
        "Invalid status",
        details=[{"field": field, "message": f"must be one of {', '.join(s.value for s in TaskStatus)}"}],
    )


def can_transition(source: TaskStatus | str, target: TaskStatus | str) -> bool:
    return TaskStatus(target) in TRANSITIONS[TaskStatus(source)]


def transition(
    current: TaskStatus | str,
    target: TaskStatus | str,
    *,
    now: Optional[datetime] = None,
) -> Tuple[TaskStatus, Optional[datetime]]:
    """Validate ``current -> target`` and return the new ``(status, completed_at)``."""
    source = parse_status(current)
    destination = parse_status(target)
    if destination not in TRANSITIONS[source]:
        raise InvalidTransition(source.value, destination.value)
    # completion time exists only while the task is completed
    completed_at = (now or utc_now()) if destination is TaskStatus.COMPLETED else None
    return destination, completed_at


__all__ = [
    "INITIAL_STATUS",
    "STATUS_ORDER",
    "TRANSITIONS",
    "TaskStatus",
    "can_transition",
    "parse_status",
    "transition",
]
