# taskboard/models/task.py
from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import List, Optional

from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class Task(SQLModel, table=True):
    __tablename__ = "tasks"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    title: str = Field(max_length=200)
    description: Optional[str] = None
    status: str = Field(default="todo", index=True)   # todo / in-progress / completed / archived
    priority: str = Field(default="medium")          # low / medium / high
    due_date: Optional[datetime] = Field(default=None, index=True)
    completed_at: Optional[datetime] = None
    category_id: Optional[str] = Field(default=None, foreign_key="categories.id", index=True)
    tags_json: str = Field(default="[]")
    estimated_hours: Optional[float] = None
    owner_id: str = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def tags(self) -> List[str]:
        try:
            data = json.loads(self.tags_json or "[]")
        except json.JSONDecodeError:
            return []
        return [str(tag) for tag in data] if isinstance(data, list) else []

    def set_tags(self, tags: List[str]) -> None:
        self.tags_json = json.dumps(list(tags), ensure_ascii=False)


__all__ = ["Task"]
