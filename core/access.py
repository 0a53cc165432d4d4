"""Ownership and sharing checks for tasks and categories."""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from core.errors import Forbidden


class Access(Enum):
    OWNER = "owner"
    SHARED_READER = "shared_reader"
    DENIED = "denied"


def task_access(owner_id: str, shared_with: Iterable[str], user_id: str) -> Access:
    if user_id and owner_id == user_id:
        return Access.OWNER
    if user_id and user_id in set(shared_with):
        return Access.SHARED_READER
    return Access.DENIED


def category_access(owner_id: Optional[str], user_id: str) -> Access:
    # categories without an owner are global
    if owner_id is None or owner_id == user_id:
        return Access.OWNER
    return Access.DENIED


def require_owner(access: Access, message: str = "Not authorized") -> None:
    if access is not Access.OWNER:
        raise Forbidden(message)


def require_reader(access: Access, message: str = "Not authorized to access this task") -> None:
    if access is Access.DENIED:
        raise Forbidden(message)


__all__ = ["Access", "category_access", "require_owner", "require_reader", "task_access"]
