# taskboard/services/query.py
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import and_, case, func, or_
from sqlmodel import Session, select

from core.errors import ValidationError
from core.lifecycle import STATUS_ORDER, TaskStatus, parse_status
from core.priorities import PRIORITY_RANK, Priority, parse_priority
from core.settings import QUERY
from core.validation import FieldErrors, clean_due_date
from models.share import TaskShare
from models.task import Task
from services.task_views import Pagination, TaskPage, TaskView, build_task_views
from storage.db import get_session
from utils.datetime_utils import to_storage

SORT_ALIASES = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "dueDate": "due_date",
    "estimatedHours": "estimated_hours",
    "title": "title",
    "priority": "priority",
    "status": "status",
}
SORTABLE = frozenset(SORT_ALIASES.values())


def _sort_key(name: str) -> str:
    key = SORT_ALIASES.get(name, name)
    if key not in SORTABLE:
        raise ValidationError(
            "Invalid sort field",
            details=[{"field": "sortBy", "message": f"cannot sort by {name!r}"}],
        )
    return key


def _positive_int(value: Any, name: str, errors: FieldErrors) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        errors.add(name, f"{name} must be an integer")
        return None
    if number < 1:
        errors.add(name, f"{name} must be at least 1")
        return None
    return number


@dataclass(frozen=True)
class TaskFilter:
    statuses: Tuple[TaskStatus, ...] = ()
    priority: Optional[Priority] = None
    category_id: Optional[str] = None
    search: Optional[str] = None
    due_from: Optional[datetime] = None
    due_to: Optional[datetime] = None
    page: int = 1
    page_size: int = QUERY.default_page_size
    sort_by: str = QUERY.default_sort_field
    sort_direction: str = QUERY.default_sort_direction

    def __post_init__(self) -> None:
        errors = FieldErrors()
        if self.page < 1:
            errors.add("page", "page must be at least 1")
        if not 1 <= self.page_size <= QUERY.max_page_size:
            errors.add("pageSize", f"pageSize must be between 1 and {QUERY.max_page_size}")
        if self.sort_direction not in ("asc", "desc"):
            errors.add("sortDirection", "sortDirection must be 'asc' or 'desc'")
        errors.raise_if_any("Invalid query")
        _sort_key(self.sort_by)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "TaskFilter":
        """Build a filter from transport-style query parameters."""

        errors = FieldErrors()
        kwargs: Dict[str, Any] = {}

        raw_status = params.get("status")
        if raw_status:
            items = raw_status.split(",") if isinstance(raw_status, str) else list(raw_status)
            statuses = []
            for item in items:
                item = str(item).strip()
                if not item:
                    continue
                try:
                    statuses.append(parse_status(item))
                except ValidationError:
                    errors.add("status", f"unknown status {item!r}")
            kwargs["statuses"] = tuple(statuses)

        if params.get("priority"):
            try:
                kwargs["priority"] = parse_priority(params["priority"])
            except ValidationError:
                errors.add("priority", "Invalid priority value")

        category = params.get("categoryId", params.get("category"))
        if category:
            kwargs["category_id"] = str(category)

        search = params.get("search")
        if isinstance(search, str) and search.strip():
            kwargs["search"] = search.strip()

        due_from = params.get("dueDateFrom", params.get("dueDate[gte]"))
        due_to = params.get("dueDateTo", params.get("dueDate[lte]"))
        kwargs["due_from"] = clean_due_date(due_from, errors)
        kwargs["due_to"] = clean_due_date(due_to, errors)

        if params.get("page") is not None:
            kwargs["page"] = _positive_int(params["page"], "page", errors)
        size = params.get("pageSize", params.get("limit"))
        if size is not None:
            kwargs["page_size"] = _positive_int(size, "pageSize", errors)

        sort_by = params.get("sortBy")
        if sort_by:
            field_name, _, direction = str(sort_by).partition(":")
            kwargs["sort_by"] = field_name
            if direction:
                kwargs["sort_direction"] = direction.strip().lower()
        if params.get("sortDirection"):
            kwargs["sort_direction"] = str(params["sortDirection"]).lower()

        errors.raise_if_any("Invalid query")
        return cls(**{k: v for k, v in kwargs.items() if v is not None})


def _order_column(key: str):
    if key == "priority":
        return case(
            *[(Task.priority == p.value, rank) for p, rank in PRIORITY_RANK.items()],
            else_=0,
        )
    if key == "status":
        return case(
            *[(Task.status == s.value, idx) for idx, s in enumerate(STATUS_ORDER)],
            else_=len(STATUS_ORDER),
        )
    return getattr(Task, key)


class QueryEngine:
    """Read-only listings over a user's own tasks."""

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    def query(self, owner_id: str, filters: Optional[TaskFilter] = None) -> TaskPage:
        filters = filters or TaskFilter()
        conditions = self._conditions(owner_id, filters)
        with self._session_factory() as session:
            total = int(
                session.exec(select(func.count()).select_from(Task).where(*conditions)).one()
            )
            column = _order_column(_sort_key(filters.sort_by))
            primary = column.desc() if filters.sort_direction == "desc" else column.asc()
            stmt = (
                select(Task)
                .where(*conditions)
                .order_by(primary, Task.id.asc())
                .offset(filters.skip)
                .limit(filters.page_size)
            )
            tasks = build_task_views(session, list(session.exec(stmt)))
            stats = self.stats_in(session, owner_id)

        pagination = Pagination(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            pages=math.ceil(total / filters.page_size),
            skip=filters.skip,
        )
        return TaskPage(tasks=tasks, pagination=pagination, stats=stats)

    def stats(self, owner_id: str) -> Dict[str, int]:
        with self._session_factory() as session:
            return self.stats_in(session, owner_id)

    def stats_in(self, session: Session, owner_id: str) -> Dict[str, int]:
        """Per-status counts over every task the user owns, ignoring page filters."""
        counts = {status.value: 0 for status in STATUS_ORDER}
        stmt = (
            select(Task.status, func.count(Task.id))
            .where(Task.owner_id == owner_id)
            .group_by(Task.status)
        )
        for status, count in session.exec(stmt):
            if status in counts:
                counts[status] = int(count)
        return counts

    def shared_with(self, user_id: str) -> List[TaskView]:
        with self._session_factory() as session:
            stmt = (
                select(Task)
                .join(TaskShare, TaskShare.task_id == Task.id)
                .where(TaskShare.user_id == user_id)
                .order_by(Task.created_at.desc(), Task.id.asc())
            )
            return build_task_views(session, list(session.exec(stmt)), with_owner=True)

    @staticmethod
    def _conditions(owner_id: str, filters: TaskFilter) -> list:
        conditions = [Task.owner_id == owner_id]
        if filters.statuses:
            conditions.append(Task.status.in_([s.value for s in filters.statuses]))
        if filters.priority is not None:
            conditions.append(Task.priority == filters.priority.value)
        if filters.category_id:
            conditions.append(Task.category_id == filters.category_id)
        if filters.search:
            conditions.append(
                or_(
                    Task.title.icontains(filters.search, autoescape=True),
                    Task.description.icontains(filters.search, autoescape=True),
                )
            )
        if filters.due_from is not None or filters.due_to is not None:
            bounds = [Task.due_date.is_not(None)]
            if filters.due_from is not None:
                bounds.append(Task.due_date >= to_storage(filters.due_from))
            if filters.due_to is not None:
                bounds.append(Task.due_date <= to_storage(filters.due_to))
            conditions.append(and_(*bounds))
        return conditions


__all__ = ["QueryEngine", "TaskFilter"]
