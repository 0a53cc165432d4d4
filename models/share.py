# taskboard/models/share.py
from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class TaskShare(SQLModel, table=True):
    """Read-only grant of a task to another user (backs ``sharedWith``)."""

    __tablename__ = "task_shares"

    task_id: str = Field(primary_key=True, foreign_key="tasks.id")
    user_id: str = Field(primary_key=True, foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utc_now)


__all__ = ["TaskShare"]
