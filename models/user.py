# taskboard/models/user.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    username: str
    email: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)


__all__ = ["User"]
