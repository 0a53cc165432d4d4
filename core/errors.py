"""Typed domain errors and the ``Result`` returned by every service call."""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONFLICT = "CONFLICT"
    SERVER_ERROR = "SERVER_ERROR"


class TaskboardError(Exception):
    """Base class for expected business failures."""

    kind = ErrorKind.SERVER_ERROR

    def __init__(self, message: str, *, details: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])

    def to_failure(self) -> "Failure":
        return Failure(kind=self.kind, message=self.message, details=list(self.details))


class ValidationError(TaskboardError):
    kind = ErrorKind.VALIDATION


class NotFound(TaskboardError):
    kind = ErrorKind.NOT_FOUND


class Forbidden(TaskboardError):
    kind = ErrorKind.FORBIDDEN


class Conflict(TaskboardError):
    kind = ErrorKind.CONFLICT


class InvalidTransition(TaskboardError):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, source: str, target: str):
        super().__init__(f"Cannot transition from {source} to {target}")
        self.source = source
        self.target = target


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    details: List[Dict[str, str]] = field(default_factory=list)

    def as_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"code": self.kind.value, "message": self.message}
        if self.details:
            doc["details"] = list(self.details)
        return doc


class ResultError(Exception):
    """Raised by :meth:`Result.unwrap` on a failed result."""

    def __init__(self, failure: Failure):
        super().__init__(f"{failure.kind.value}: {failure.message}")
        self.failure = failure


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[Failure] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Failure) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    def unwrap(self) -> T:
        if self.error is not None:
            raise ResultError(self.error)
        return self.value  # type: ignore[return-value]

    def as_document(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"success": False, "error": self.error.as_document()}
        value = self.value
        if hasattr(value, "as_document"):
            value = value.as_document()
        elif isinstance(value, list):
            value = [v.as_document() if hasattr(v, "as_document") else v for v in value]
        return {"success": True, "data": value}


def service_call(logger: logging.Logger) -> Callable[[Callable[..., T]], Callable[..., Result[T]]]:
    """Turn raised domain errors into ``Result`` failures at the service boundary.

    Persistence faults become ``SERVER_ERROR`` failures and are logged with a
    traceback. Any other exception propagates.
    """

    def decorator(fn: Callable[..., T]) -> Callable[..., Result[T]]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Result[T]:
            try:
                return Result.success(fn(*args, **kwargs))
            except TaskboardError as exc:
                logger.info("%s rejected: %s %s", fn.__name__, exc.kind.value, exc.message)
                return Result.failure(exc.to_failure())
            except SQLAlchemyError:
                logger.exception("%s failed in persistence layer", fn.__name__)
                return Result.failure(
                    Failure(kind=ErrorKind.SERVER_ERROR, message="Server Error")
                )

        return wrapper

    return decorator


__all__ = [
    "Conflict",
    "ErrorKind",
    "Failure",
    "Forbidden",
    "InvalidTransition",
    "NotFound",
    "Result",
    "ResultError",
    "TaskboardError",
    "ValidationError",
    "service_call",
]
