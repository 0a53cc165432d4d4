# taskboard/models/category.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class Category(SQLModel, table=True):
    __tablename__ = "categories"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(max_length=50)
    color: str = Field(default="#3B82F6")
    # None marks a global category
    owner_id: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    task_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["Category"]
