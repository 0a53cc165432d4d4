"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``.

    ``TASKBOARD_DATA_DIR`` wins over the platform defaults.
    """

    platform_id = (platform or sys.platform).lower()
    environ = dict(os.environ if env is None else env)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    override = environ.get("TASKBOARD_DATA_DIR")
    if override:
        return Path(override).expanduser()

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "Taskboard"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

DB_PATH = DATA_DIR / "taskboard.db"


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = field(
        default_factory=lambda: os.environ.get("TASKBOARD_DATABASE_URL")
        or f"sqlite:///{DB_PATH.as_posix()}"
    )
    # seconds a writer waits for the SQLite lock before giving up
    busy_timeout: float = 30.0
    echo: bool = False


DATABASE = DatabaseSettings()


@dataclass(frozen=True)
class QuerySettings:
    default_page_size: int = 10
    max_page_size: int = 100
    default_sort_field: str = "createdAt"
    default_sort_direction: str = "desc"


QUERY = QuerySettings()


@dataclass(frozen=True)
class TaskSettings:
    title_max_length: int = 200
    default_priority: str = "medium"
    default_status: str = "todo"


TASKS = TaskSettings()


@dataclass(frozen=True)
class CategorySettings:
    name_max_length: int = 50
    default_color: str = "#3B82F6"


CATEGORIES = CategorySettings()


@dataclass(frozen=True)
class UserSettings:
    username_max_length: int = 50


USERS = UserSettings()


@dataclass(frozen=True)
class LoggingSettings:
    enabled: bool = True
    level: str = os.environ.get("TASKBOARD_LOG_LEVEL", "INFO")
    directory: Path = LOG_DIR
    filename: str = "taskboard.log"
    max_bytes: int = 1_000_000
    backup_count: int = 3
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


LOGGING = LoggingSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "DATABASE",
    "QUERY",
    "TASKS",
    "CATEGORIES",
    "USERS",
    "LOGGING",
    "get_default_data_dir",
]
