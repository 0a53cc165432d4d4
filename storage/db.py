# taskboard/storage/db.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from core.settings import DATABASE

# Ensure SQLModel metadata is populated
import models  # noqa: F401
from storage import migrations


_engine: Optional[Engine] = None


def make_engine(url: str, *, echo: bool = False) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": DATABASE.busy_timeout}
    return create_engine(url, echo=echo, connect_args=connect_args)


def get_engine() -> Engine:
    """Return (and lazily create) the application engine."""
    global _engine
    if _engine is None:
        if DATABASE.url.startswith("sqlite:///"):
            Path(DATABASE.url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
        _engine = make_engine(DATABASE.url, echo=DATABASE.echo)
    return _engine


def init_db(engine: Optional[Engine] = None) -> Engine:
    actual = engine or get_engine()
    SQLModel.metadata.create_all(actual)
    migrations.run_all(actual)
    return actual


def get_session() -> Session:
    return Session(get_engine())


__all__ = ["get_engine", "get_session", "init_db", "make_engine"]
