# taskboard/services/category_counter.py
from __future__ import annotations

from typing import Callable, List, Optional

from sqlalchemy import func, select, update
from sqlmodel import Session

from core.log import get_logger
from models.category import Category
from models.task import Task
from storage.db import get_session


class CategoryCounter:
    """Keeps ``Category.task_count`` equal to the number of referencing tasks.

    Every adjustment is a single ``UPDATE ... SET task_count = task_count +/- 1``
    executed on the caller's session, so it commits or rolls back together with
    the task write that caused it. The counter is never read back and rewritten.
    """

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory
        self.logger = get_logger("counter")

    def increment(self, session: Session, category_id: Optional[str]) -> bool:
        if not category_id:
            return False
        stmt = (
            update(Category)
            .where(Category.id == category_id)
            .values(task_count=Category.task_count + 1)
        )
        changed = session.connection().execute(stmt).rowcount == 1
        self.logger.debug("increment category=%s changed=%s", category_id, changed)
        return changed

    def decrement(self, session: Session, category_id: Optional[str]) -> bool:
        if not category_id:
            return False
        stmt = (
            update(Category)
            .where(Category.id == category_id, Category.task_count > 0)
            .values(task_count=Category.task_count - 1)
        )
        changed = session.connection().execute(stmt).rowcount == 1
        self.logger.debug("decrement category=%s changed=%s", category_id, changed)
        return changed

    def reassign(self, session: Session, from_id: Optional[str], to_id: Optional[str]) -> bool:
        """Move one unit from ``from_id`` to ``to_id``.

        Returns False when ``to_id`` names a category that no longer exists.
        """
        if from_id == to_id:
            return True
        self.decrement(session, from_id)
        if to_id is None:
            return True
        return self.increment(session, to_id)

    def reconcile(self) -> List[str]:
        """Recompute every stored count; return ids of categories that had drifted."""
        actual = (
            select(func.count(Task.id))
            .where(Task.category_id == Category.id)
            .scalar_subquery()
        )
        with self._session_factory() as session:
            conn = session.connection()
            drifted = [
                row[0]
                for row in conn.execute(
                    select(Category.id).where(Category.task_count != actual)
                )
            ]
            if drifted:
                conn.execute(
                    update(Category)
                    .where(Category.id.in_(drifted))
                    .values(task_count=actual)
                )
            session.commit()
        if drifted:
            self.logger.warning("Reconciled task counts for %d categories", len(drifted))
        return drifted


__all__ = ["CategoryCounter"]
