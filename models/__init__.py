"""ORM models exposed by the Taskboard application."""
from .category import Category
from .share import TaskShare
from .task import Task
from .user import User

__all__ = ["Category", "Task", "TaskShare", "User"]
