from __future__ import annotations

import pytest

from lms.core.errors import (
    AlreadyEnrolledError,
    CourseNotFoundError,
    DomainError,
    InternalError,
    LectureLockedError,
    NotEnrolledError,
    StaleLectureError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("error", "kind", "message"),
    [
        (CourseNotFoundError(), "not_found", "course not found"),
        (AlreadyEnrolledError(), "conflict", "already enrolled in this course"),
        (NotEnrolledError(), "conflict", "not enrolled in this course"),
        (LectureLockedError(), "conflict", "previous lecture must be completed first"),
        (StaleLectureError(), "conflict", "lecture was removed while completing"),
        (ValidationError("price must be non-negative"), "validation", "price must be non-negative"),
        (InternalError(), "internal", "internal error"),
    ],
)
def test_error_kind_and_message(error: DomainError, kind: str, message: str) -> None:
    assert isinstance(error, DomainError)
    assert error.kind == kind
    assert error.message == message
    assert str(error) == message
