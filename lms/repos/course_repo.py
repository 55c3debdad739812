from __future__ import annotations

from typing import Protocol

from lms.db.engine import async_session_factory
from lms.models.course import Course
from lms.repos.pg_course_repo import PgCourseRepo


class CourseRepo(Protocol):
    async def get_by_id(self, course_id: str) -> Course | None: ...
    async def list_all(self) -> list[Course]: ...
    async def add(self, course: Course) -> None: ...
    async def save(self, course: Course) -> bool: ...
    async def delete(self, course_id: str) -> Course | None: ...


class InMemoryCourseRepo:
    """Whole-document store keyed by course ID.

    Each method runs without awaiting in between its read and its write,
    so a save or delete is atomic with respect to other requests on the
    same event loop.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, Course] = {}

    async def get_by_id(self, course_id: str) -> Course | None:
        return self._by_id.get(course_id)

    async def list_all(self) -> list[Course]:
        return list(self._by_id.values())

    async def add(self, course: Course) -> None:
        if course.id in self._by_id:
            raise ValueError("course id already exists")
        self._by_id[course.id] = course

    async def save(self, course: Course) -> bool:
        if course.id not in self._by_id:
            return False
        self._by_id[course.id] = course
        return True

    async def delete(self, course_id: str) -> Course | None:
        return self._by_id.pop(course_id, None)


if async_session_factory is not None:
    course_repo: CourseRepo = PgCourseRepo(async_session_factory)
else:
    course_repo = InMemoryCourseRepo()
