# taskboard/services/users.py
from __future__ import annotations

from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy import func
from sqlmodel import Session, select

from core.errors import Conflict, NotFound, service_call
from core.log import get_logger
from core.validation import FieldErrors, clean_email, clean_username
from models.user import User
from storage.db import get_session

logger = get_logger("users")


class UserDirectory:
    """Identity lookups; ``resolve*`` return the stable id used as owner/share key."""

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    @service_call(logger)
    def register(self, username: str, email: str) -> User:
        errors = FieldErrors()
        clean_name = clean_username(username, errors)
        clean_mail = clean_email(email, errors)
        errors.raise_if_any()
        with self._session_factory() as session:
            if self._find_by_email(session, clean_mail) is not None:
                raise Conflict("email already exists")
            user = User(username=clean_name, email=clean_mail)
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise Conflict("email already exists") from exc
            session.refresh(user)
            logger.info("User registered id=%s", user.id)
            return user

    def get(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        with self._session_factory() as session:
            return session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        with self._session_factory() as session:
            return self._find_by_email(session, email)

    def list(self) -> List[User]:
        with self._session_factory() as session:
            return list(session.exec(select(User).order_by(User.created_at.asc())))

    def resolve_by_id(self, user_id: str) -> str:
        user = self.get(user_id)
        if user is None:
            raise NotFound("User not found")
        return user.id

    def resolve_by_email(self, email: str) -> str:
        user = self.get_by_email(email)
        if user is None:
            raise NotFound("User not found")
        return user.id

    def resolve(self, identifier_or_email: str) -> str:
        """Accept either a user id or an email address."""
        value = (identifier_or_email or "").strip()
        if not value:
            raise NotFound("User not found")
        if "@" in value:
            return self.resolve_by_email(value)
        return self.resolve_by_id(value)

    @staticmethod
    def _find_by_email(session: Session, email: str) -> Optional[User]:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return session.exec(stmt).first()


__all__ = ["UserDirectory"]
