# taskboard/services/tasks.py
from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from core.access import Access, category_access, require_owner, require_reader, task_access
from core.errors import Conflict, Forbidden, NotFound, ValidationError, service_call
from core.lifecycle import INITIAL_STATUS, parse_status, transition
from core.log import get_logger
from core.priorities import parse_priority
from core.validation import (
    FieldErrors,
    clean_description,
    clean_due_date,
    clean_estimated_hours,
    clean_reference,
    clean_tags,
    clean_title,
)
from models.category import Category
from models.share import TaskShare
from models.task import Task
from services.category_counter import CategoryCounter
from services.query import QueryEngine, TaskFilter
from services.task_views import TaskPage, TaskView, build_task_views, share_map
from services.users import UserDirectory
from storage.db import get_session
from utils.datetime_utils import utc_now

logger = get_logger("tasks")

# contract names and their snake_case spellings map onto model attributes
FIELD_ALIASES: Dict[str, str] = {
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "dueDate": "due_date",
    "due_date": "due_date",
    "categoryId": "category_id",
    "category_id": "category_id",
    "category": "category_id",
    "tags": "tags",
    "estimatedHours": "estimated_hours",
    "estimated_hours": "estimated_hours",
}

READ_ONLY_FIELDS = frozenset(
    {
        "id",
        "ownerId",
        "owner_id",
        "user",
        "sharedWith",
        "shared_with",
        "completedAt",
        "completed_at",
        "createdAt",
        "created_at",
        "updatedAt",
        "updated_at",
        "taskCount",
    }
)


def _normalize_fields(fields: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    errors = FieldErrors()
    data: Dict[str, Any] = {}
    for key, value in (fields or {}).items():
        if key in READ_ONLY_FIELDS:
            errors.add(key, f"{key} cannot be set directly")
        elif key not in FIELD_ALIASES:
            errors.add(key, f"unknown field {key!r}")
        else:
            data[FIELD_ALIASES[key]] = value
    errors.raise_if_any()
    return data


def _require_user(user_id: str) -> None:
    if not isinstance(user_id, str) or not user_id.strip():
        raise Forbidden("Not authorized to access this route")


def _category_is(category_id: Optional[str]):
    if category_id is None:
        return Task.category_id.is_(None)
    return Task.category_id == category_id


class TaskService:
    def __init__(
        self,
        session_factory: Callable[[], Session] = get_session,
        *,
        users: Optional[UserDirectory] = None,
        counter: Optional[CategoryCounter] = None,
        queries: Optional[QueryEngine] = None,
    ) -> None:
        self._session_factory = session_factory
        self.users = users or UserDirectory(session_factory)
        self.counter = counter or CategoryCounter(session_factory)
        self.queries = queries or QueryEngine(session_factory)

    # ---------- create / read ----------
    @service_call(logger)
    def create(self, user_id: str, fields: Mapping[str, Any]) -> TaskView:
        _require_user(user_id)
        data = _normalize_fields(fields)
        now = utc_now()

        errors = FieldErrors()
        if data.get("status") not in (None, INITIAL_STATUS.value):
            errors.add("status", "New tasks always start as todo")
        title = clean_title(data.get("title"), errors)
        priority = None
        if data.get("priority") is None:
            errors.add("priority", "Task priority is required")
        else:
            try:
                priority = parse_priority(data["priority"])
            except ValidationError as exc:
                errors.add("priority", exc.message)
        description = clean_description(data.get("description"), errors)
        due_date = clean_due_date(data.get("due_date"), errors, not_before=now)
        category_id = clean_reference(data.get("category_id"), "categoryId", errors)
        tags = clean_tags(data.get("tags"), errors)
        estimated_hours = clean_estimated_hours(data.get("estimated_hours"), errors)
        errors.raise_if_any()

        with self._session_factory() as session:
            if category_id:
                self._authorize_category(session, category_id, user_id)
            task = Task(
                title=title,
                description=description,
                status=INITIAL_STATUS.value,
                priority=priority.value,
                due_date=due_date,
                category_id=category_id,
                estimated_hours=estimated_hours,
                owner_id=user_id,
                created_at=now,
                updated_at=now,
            )
            task.set_tags(tags)
            # counter and insert share one transaction; a failed insert rolls both back
            if category_id and not self.counter.increment(session, category_id):
                # removed after the ownership check
                raise NotFound("Category not found")
            session.add(task)
            session.commit()
            session.refresh(task)
            logger.info("Task created id=%s owner=%s category=%s", task.id, user_id, category_id)
            return build_task_views(session, [task])[0]

    @service_call(logger)
    def get(self, task_id: str, user_id: str) -> TaskView:
        _require_user(user_id)
        with self._session_factory() as session:
            task = self._load(session, task_id)
            require_reader(self._access(session, task, user_id))
            return build_task_views(session, [task])[0]

    @service_call(logger)
    def list(
        self,
        user_id: str,
        filters: Union[TaskFilter, Mapping[str, Any], None] = None,
    ) -> TaskPage:
        _require_user(user_id)
        if filters is not None and not isinstance(filters, TaskFilter):
            filters = TaskFilter.from_params(filters)
        return self.queries.query(user_id, filters)

    @service_call(logger)
    def list_shared(self, user_id: str) -> List[TaskView]:
        _require_user(user_id)
        return self.queries.shared_with(user_id)

    # ---------- mutations ----------
    @service_call(logger)
    def update(self, task_id: str, user_id: str, patch: Mapping[str, Any]) -> TaskView:
        _require_user(user_id)
        data = _normalize_fields(patch)
        with self._session_factory() as session:
            task = self._load(session, task_id)
            require_owner(self._access(session, task, user_id))

            errors = FieldErrors()
            changes: Dict[str, Any] = {}
            if "title" in data:
                changes["title"] = clean_title(data["title"], errors)
            if "description" in data:
                changes["description"] = clean_description(data["description"], errors)
            if "priority" in data:
                try:
                    changes["priority"] = parse_priority(data["priority"]).value
                except ValidationError as exc:
                    errors.add("priority", exc.message)
            if "due_date" in data:
                # future-only rule applies at creation, not on later edits
                changes["due_date"] = clean_due_date(data["due_date"], errors)
            if "estimated_hours" in data:
                changes["estimated_hours"] = clean_estimated_hours(data["estimated_hours"], errors)
            tags = clean_tags(data["tags"], errors) if "tags" in data else None
            new_category = task.category_id
            if "category_id" in data:
                new_category = clean_reference(data["category_id"], "categoryId", errors)
            target_status = None
            if "status" in data:
                try:
                    target_status = parse_status(data["status"])
                except ValidationError as exc:
                    errors.add("status", exc.message)
            errors.raise_if_any()

            if target_status is not None and target_status.value != task.status:
                new_status, changes["completed_at"] = transition(task.status, target_status)
                changes["status"] = new_status.value

            if new_category != task.category_id:
                if new_category:
                    self._authorize_category(session, new_category, user_id)
                self._move_category(session, task, new_category)
                if not self.counter.reassign(session, task.category_id, new_category):
                    raise NotFound("Category not found")
                changes["category_id"] = new_category

            for key, value in changes.items():
                setattr(task, key, value)
            if tags is not None:
                task.set_tags(tags)
            task.updated_at = utc_now()
            session.add(task)
            session.commit()
            session.refresh(task)
            logger.info("Task updated id=%s fields=%s", task.id, sorted(data))
            return build_task_views(session, [task])[0]

    @service_call(logger)
    def delete(self, task_id: str, user_id: str) -> str:
        _require_user(user_id)
        with self._session_factory() as session:
            task = self._load(session, task_id)
            require_owner(self._access(session, task, user_id))
            removed = session.connection().execute(
                delete(Task).where(Task.id == task.id, _category_is(task.category_id))
            )
            if removed.rowcount != 1:
                raise Conflict("Task was changed by another request")
            self.counter.decrement(session, task.category_id)
            session.connection().execute(delete(TaskShare).where(TaskShare.task_id == task.id))
            session.commit()
        logger.info("Task deleted id=%s", task_id)
        return task_id

    @service_call(logger)
    def set_status(self, task_id: str, user_id: str, status: str) -> TaskView:
        _require_user(user_id)
        with self._session_factory() as session:
            task = self._load(session, task_id)
            require_owner(self._access(session, task, user_id))
            new_status, task.completed_at = transition(task.status, status)
            task.status = new_status.value
            task.updated_at = utc_now()
            session.add(task)
            session.commit()
            session.refresh(task)
            logger.info("Task status id=%s -> %s", task.id, task.status)
            return build_task_views(session, [task])[0]

    @service_call(logger)
    def set_priority(self, task_id: str, user_id: str, priority: str) -> TaskView:
        _require_user(user_id)
        with self._session_factory() as session:
            task = self._load(session, task_id)
            require_owner(self._access(session, task, user_id))
            task.priority = parse_priority(priority).value
            task.updated_at = utc_now()
            session.add(task)
            session.commit()
            session.refresh(task)
            return build_task_views(session, [task])[0]

    @service_call(logger)
    def share(self, task_id: str, user_id: str, target: str) -> TaskView:
        """Grant read access to ``target`` (user id or email). Idempotent."""
        _require_user(user_id)
        with self._session_factory() as session:
            task = self._load(session, task_id)
            require_owner(self._access(session, task, user_id))
            target_id = self.users.resolve(target)
            if target_id != task.owner_id and session.get(TaskShare, (task.id, target_id)) is None:
                session.add(TaskShare(task_id=task.id, user_id=target_id))
                task.updated_at = utc_now()
                session.add(task)
                try:
                    session.commit()
                except IntegrityError:
                    # a concurrent share of the same pair won the insert
                    session.rollback()
                else:
                    logger.info("Task shared id=%s with=%s", task.id, target_id)
                session.refresh(task)
            return build_task_views(session, [task])[0]

    # ---------- helpers ----------
    @staticmethod
    def _load(session: Session, task_id: str) -> Task:
        task = session.get(Task, task_id) if task_id else None
        if task is None:
            raise NotFound("Task not found")
        return task

    @staticmethod
    def _access(session: Session, task: Task, user_id: str) -> Access:
        if task.owner_id == user_id:
            return Access.OWNER
        shared = share_map(session, [task.id]).get(task.id, [])
        return task_access(task.owner_id, shared, user_id)

    @staticmethod
    def _move_category(session: Session, task: Task, new_category: Optional[str]) -> None:
        """Repoint the row only if it still has the category this request loaded."""
        stmt = (
            update(Task)
            .where(Task.id == task.id, _category_is(task.category_id))
            .values(category_id=new_category)
        )
        if session.connection().execute(stmt).rowcount != 1:
            raise Conflict("Task was changed by another request")

    @staticmethod
    def _authorize_category(session: Session, category_id: str, user_id: str) -> Category:
        category = session.get(Category, category_id)
        if category is None:
            raise NotFound("Category not found")
        require_owner(
            category_access(category.owner_id, user_id),
            "Not authorized for this category",
        )
        return category


__all__ = ["TaskService"]
