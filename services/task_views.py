"""Read models returned by the task and category services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlmodel import Session, select

from models.category import Category
from models.share import TaskShare
from models.task import Task
from models.user import User
from utils.datetime_utils import ensure_utc, to_rfc3339_utc

# status values that are not valid identifiers in the response document
STATS_DOCUMENT_KEYS = {"in-progress": "inProgress"}


@dataclass(frozen=True)
class CategorySummary:
    id: str
    name: str
    color: str

    def as_document(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}


@dataclass(frozen=True)
class OwnerSummary:
    id: str
    username: str
    email: str

    def as_document(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "email": self.email}


@dataclass(frozen=True)
class CategoryView:
    id: str
    name: str
    color: str
    owner_id: Optional[str]
    task_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Category) -> "CategoryView":
        return cls(
            id=row.id,
            name=row.name,
            color=row.color,
            owner_id=row.owner_id,
            task_count=row.task_count,
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
        )

    def as_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "ownerId": self.owner_id,
            "taskCount": self.task_count,
            "createdAt": to_rfc3339_utc(self.created_at),
            "updatedAt": to_rfc3339_utc(self.updated_at),
        }


@dataclass(frozen=True)
class TaskView:
    id: str
    title: str
    description: Optional[str]
    status: str
    priority: str
    due_date: Optional[datetime]
    completed_at: Optional[datetime]
    category_id: Optional[str]
    tags: List[str]
    estimated_hours: Optional[float]
    owner_id: str
    shared_with: List[str]
    created_at: datetime
    updated_at: datetime
    category: Optional[CategorySummary] = None
    owner: Optional[OwnerSummary] = None

    def as_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "dueDate": to_rfc3339_utc(self.due_date),
            "completedAt": to_rfc3339_utc(self.completed_at),
            "categoryId": self.category_id,
            "category": self.category.as_document() if self.category else None,
            "tags": list(self.tags),
            "estimatedHours": self.estimated_hours,
            "ownerId": self.owner_id,
            "owner": self.owner.as_document() if self.owner else None,
            "sharedWith": list(self.shared_with),
            "createdAt": to_rfc3339_utc(self.created_at),
            "updatedAt": to_rfc3339_utc(self.updated_at),
        }


@dataclass(frozen=True)
class Pagination:
    total: int
    page: int
    page_size: int
    pages: int
    skip: int

    def as_document(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.page_size,
            "pages": self.pages,
        }


@dataclass(frozen=True)
class TaskPage:
    tasks: List[TaskView]
    pagination: Pagination
    stats: Dict[str, int] = field(default_factory=dict)

    def as_document(self) -> Dict[str, Any]:
        return {
            "tasks": [t.as_document() for t in self.tasks],
            "pagination": self.pagination.as_document(),
            "stats": {STATS_DOCUMENT_KEYS.get(k, k): v for k, v in self.stats.items()},
        }


def share_map(session: Session, task_ids: Iterable[str]) -> Dict[str, List[str]]:
    ids = list(task_ids)
    if not ids:
        return {}
    stmt = (
        select(TaskShare)
        .where(TaskShare.task_id.in_(ids))
        .order_by(TaskShare.created_at.asc(), TaskShare.user_id.asc())
    )
    result: Dict[str, List[str]] = {}
    for link in session.exec(stmt):
        result.setdefault(link.task_id, []).append(link.user_id)
    return result


def build_task_views(
    session: Session,
    tasks: Sequence[Task],
    *,
    with_owner: bool = False,
) -> List[TaskView]:
    """Attach category summaries, share lists and (optionally) owner summaries."""

    category_ids = {t.category_id for t in tasks if t.category_id}
    categories: Dict[str, CategorySummary] = {}
    if category_ids:
        for row in session.exec(select(Category).where(Category.id.in_(category_ids))):
            categories[row.id] = CategorySummary(id=row.id, name=row.name, color=row.color)

    owners: Dict[str, OwnerSummary] = {}
    if with_owner:
        owner_ids = {t.owner_id for t in tasks}
        if owner_ids:
            for row in session.exec(select(User).where(User.id.in_(owner_ids))):
                owners[row.id] = OwnerSummary(id=row.id, username=row.username, email=row.email)

    shares = share_map(session, [t.id for t in tasks])

    return [
        TaskView(
            id=t.id,
            title=t.title,
            description=t.description,
            status=t.status,
            priority=t.priority,
            due_date=ensure_utc(t.due_date),
            completed_at=ensure_utc(t.completed_at),
            category_id=t.category_id,
            tags=t.tags,
            estimated_hours=t.estimated_hours,
            owner_id=t.owner_id,
            shared_with=shares.get(t.id, []),
            created_at=ensure_utc(t.created_at),
            updated_at=ensure_utc(t.updated_at),
            category=categories.get(t.category_id) if t.category_id else None,
            owner=owners.get(t.owner_id),
        )
        for t in tasks
    ]


__all__ = [
    "CategorySummary",
    "CategoryView",
    "OwnerSummary",
    "Pagination",
    "TaskPage",
    "TaskView",
    "build_task_views",
    "share_map",
]
