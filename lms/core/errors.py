"""Typed domain errors.

Services raise these; the HTTP layer maps ``kind`` to a status code in
one place (lms/api/errors.py).  Every error carries a stable
(kind, message) pair so clients can branch on ``kind`` without parsing
prose.
"""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal[
    "not_found", "conflict", "validation", "unauthorized", "forbidden", "internal"
]


class DomainError(Exception):
    """Base error for catalog, identity and enrollment operations."""

    kind: ErrorKind = "internal"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, message={self.message!r})"


class NotFoundError(DomainError):
    kind: ErrorKind = "not_found"


class ConflictError(DomainError):
    kind: ErrorKind = "conflict"


class ValidationError(DomainError):
    kind: ErrorKind = "validation"


class UnauthorizedError(DomainError):
    kind: ErrorKind = "unauthorized"


class ForbiddenError(DomainError):
    kind: ErrorKind = "forbidden"


class InternalError(DomainError):
    """Wraps storage/driver failures so their text never reaches a client."""

    kind: ErrorKind = "internal"

    def __init__(self, message: str = "internal error") -> None:
        super().__init__(message)


# --- Catalog ---------------------------------------------------------------


class CourseNotFoundError(NotFoundError):
    def __init__(self, message: str = "course not found") -> None:
        super().__init__(message)


class ModuleNotFoundError(NotFoundError):  # noqa: A001
    def __init__(self, message: str = "module not found") -> None:
        super().__init__(message)


class LectureNotFoundError(NotFoundError):
    def __init__(self, message: str = "lecture not found") -> None:
        super().__init__(message)


# --- Identity --------------------------------------------------------------


class UserNotFoundError(NotFoundError):
    def __init__(self, message: str = "user not found") -> None:
        super().__init__(message)


class EmailAlreadyExistsError(ConflictError):
    def __init__(self, message: str = "email already exists") -> None:
        super().__init__(message)


# --- Enrollment ------------------------------------------------------------


class AlreadyEnrolledError(ConflictError):
    def __init__(self, message: str = "already enrolled in this course") -> None:
        super().__init__(message)


class NotEnrolledError(ConflictError):
    def __init__(self, message: str = "not enrolled in this course") -> None:
        super().__init__(message)


class LectureLockedError(ConflictError):
    def __init__(
        self, message: str = "previous lecture must be completed first"
    ) -> None:
        super().__init__(message)


class StaleLectureError(ConflictError):
    def __init__(
        self, message: str = "lecture was removed while completing"
    ) -> None:
        super().__init__(message)
