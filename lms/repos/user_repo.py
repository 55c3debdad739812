from __future__ import annotations

from collections.abc import Collection
from dataclasses import replace
from typing import Protocol

from lms.db.engine import async_session_factory
from lms.models.course import AssetRef
from lms.models.user import Enrollment, User, prune_enrollment
from lms.repos.pg_user_repo import PgUserRepo


class UserRepo(Protocol):
    async def get_by_id(self, user_id: str) -> User | None: ...
    async def get_by_email(self, email: str) -> User | None: ...
    async def add(self, user: User, password_hash: str) -> None: ...
    async def get_password_hash(self, user_id: str) -> str | None: ...
    async def update_password_hash(self, user_id: str, password_hash: str) -> bool: ...
    async def update_profile(
        self,
        user_id: str,
        *,
        name: str | None = None,
        profile_pic: AssetRef | None = None,
    ) -> User | None: ...
    async def add_enrollment(self, user_id: str, enrollment: Enrollment) -> bool: ...
    async def save_enrollment(self, user_id: str, enrollment: Enrollment) -> bool: ...
    async def prune_completed_lectures(
        self,
        lecture_ids: Collection[str],
        *,
        course_id: str | None = None,
        total_lectures: int | None = None,
    ) -> int: ...
    async def remove_enrollments(self, course_id: str) -> int: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_id: dict[str, User] = {}
        self._id_by_email: dict[str, str] = {}
        self._password_hashes: dict[str, str] = {}

    async def get_by_id(self, user_id: str) -> User | None:
        return self._by_id.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        user_id = self._id_by_email.get(email)
        return self._by_id.get(user_id) if user_id is not None else None

    async def add(self, user: User, password_hash: str) -> None:
        if user.email in self._id_by_email:
            raise ValueError("email already exists")
        self._by_id[user.id] = user
        self._id_by_email[user.email] = user.id
        self._password_hashes[user.id] = password_hash

    async def get_password_hash(self, user_id: str) -> str | None:
        return self._password_hashes.get(user_id)

    async def update_password_hash(self, user_id: str, password_hash: str) -> bool:
        if user_id not in self._by_id:
            return False
        self._password_hashes[user_id] = password_hash
        return True

    async def update_profile(
        self,
        user_id: str,
        *,
        name: str | None = None,
        profile_pic: AssetRef | None = None,
    ) -> User | None:
        u = self._by_id.get(user_id)
        if u is None:
            return None

        updated = replace(
            u,
            name=name if name is not None else u.name,
            profile_pic=profile_pic if profile_pic is not None else u.profile_pic,
        )
        self._by_id[user_id] = updated
        return updated

    async def add_enrollment(self, user_id: str, enrollment: Enrollment) -> bool:
        """Append a new enrollment.  False if the user is gone.

        Raises ValueError when the user already holds one for the course.
        """
        u = self._by_id.get(user_id)
        if u is None:
            return False
        if u.enrollment_for(enrollment.course_id) is not None:
            raise ValueError("already enrolled")
        self._by_id[user_id] = u.with_enrollment(enrollment)
        return True

    async def save_enrollment(self, user_id: str, enrollment: Enrollment) -> bool:
        # Replaces one existing enrollment; the user's others are untouched
        u = self._by_id.get(user_id)
        if u is None or u.enrollment_for(enrollment.course_id) is None:
            return False
        self._by_id[user_id] = u.with_enrollment(enrollment)
        return True

    async def prune_completed_lectures(
        self,
        lecture_ids: Collection[str],
        *,
        course_id: str | None = None,
        total_lectures: int | None = None,
    ) -> int:
        ids = frozenset(lecture_ids)
        touched = 0
        for user_id, u in list(self._by_id.items()):
            pruned = tuple(
                prune_enrollment(e, ids, course_id, total_lectures) for e in u.enrollments
            )
            if pruned != u.enrollments:
                self._by_id[user_id] = replace(u, enrollments=pruned)
                touched += 1
        return touched

    async def remove_enrollments(self, course_id: str) -> int:
        touched = 0
        for user_id, u in list(self._by_id.items()):
            kept = tuple(e for e in u.enrollments if e.course_id != course_id)
            if len(kept) != len(u.enrollments):
                self._by_id[user_id] = replace(u, enrollments=kept)
                touched += 1
        return touched


if async_session_factory is not None:
    user_repo: UserRepo = PgUserRepo(async_session_factory)
else:
    user_repo = InMemoryUserRepo()
