# taskboard/services/categories.py
from __future__ import annotations

from typing import Callable, List, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from core.access import category_access, require_owner
from core.errors import NotFound, service_call
from core.log import get_logger
from core.validation import FieldErrors, clean_category_name, clean_color
from models.category import Category
from models.task import Task
from services.task_views import CategoryView
from storage.db import get_session
from utils.datetime_utils import utc_now

logger = get_logger("categories")


class CategoryService:
    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    @service_call(logger)
    def list(self, user_id: str) -> List[CategoryView]:
        with self._session_factory() as session:
            stmt = (
                select(Category)
                .where(Category.owner_id == user_id)
                .order_by(Category.name.asc())
            )
            return [CategoryView.from_row(row) for row in session.exec(stmt)]

    @service_call(logger)
    def get(self, category_id: str, user_id: str) -> CategoryView:
        with self._session_factory() as session:
            category = self._load(session, category_id)
            require_owner(category_access(category.owner_id, user_id))
            return CategoryView.from_row(category)

    @service_call(logger)
    def create(self, user_id: str, name: str, color: Optional[str] = None) -> CategoryView:
        return self._create(user_id, name, color)

    @service_call(logger)
    def create_global(self, name: str, color: Optional[str] = None) -> CategoryView:
        return self._create(None, name, color)

    @service_call(logger)
    def update(
        self,
        category_id: str,
        user_id: str,
        *,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> CategoryView:
        with self._session_factory() as session:
            category = self._load(session, category_id)
            require_owner(category_access(category.owner_id, user_id))
            errors = FieldErrors()
            new_name = clean_category_name(name, errors) if name is not None else None
            new_color = clean_color(color, errors) if color is not None else None
            errors.raise_if_any()
            if new_name is not None:
                category.name = new_name
            if new_color is not None:
                category.color = new_color
            category.updated_at = utc_now()
            session.add(category)
            session.commit()
            session.refresh(category)
            return CategoryView.from_row(category)

    @service_call(logger)
    def delete(self, category_id: str, user_id: str) -> int:
        """Delete a category and clear it on every task; returns tasks cleared."""
        with self._session_factory() as session:
            category = self._load(session, category_id)
            require_owner(category_access(category.owner_id, user_id))
            # Clear references first so no task points at a missing category
            cleared = session.connection().execute(
                update(Task)
                .where(Task.category_id == category_id)
                .values(category_id=None, updated_at=utc_now())
            ).rowcount
            session.delete(category)
            session.commit()
        logger.info("Category deleted id=%s cleared_tasks=%s", category_id, cleared)
        return int(cleared)

    # ------------------------------------------------------------------
    def _create(self, owner_id: Optional[str], name: str, color: Optional[str]) -> CategoryView:
        errors = FieldErrors()
        clean_name = clean_category_name(name, errors)
        clean_hex = clean_color(color, errors)
        errors.raise_if_any()
        with self._session_factory() as session:
            category = Category(name=clean_name, color=clean_hex, owner_id=owner_id)
            session.add(category)
            session.commit()
            session.refresh(category)
            logger.info("Category created id=%s owner=%s", category.id, owner_id)
            return CategoryView.from_row(category)

    @staticmethod
    def _load(session: Session, category_id: str) -> Category:
        category = session.get(Category, category_id) if category_id else None
        if category is None:
            raise NotFound("Category not found")
        return category


__all__ = ["CategoryService"]
