from __future__ import annotations

import time
from collections.abc import Collection
from dataclasses import dataclass, replace
from uuid import uuid4

from lms.models.course import AssetRef

DEFAULT_AVATAR_URL = (
    "https://uxwing.com/wp-content/themes/uxwing/download/"
    "peoples-avatars/man-user-circle-icon.png"
)

ROLES = ("user", "admin")


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A user's standing in one course.

    ``completed_lectures`` keeps completion order and never holds the same
    ID twice.  ``progress`` is a percentage derived from it at write time.
    """

    course_id: str
    completed_lectures: tuple[str, ...] = ()
    progress: float = 0.0
    enrolled_at: int = 0

    @staticmethod
    def new(*, course_id: str) -> Enrollment:
        return Enrollment(course_id=course_id, enrolled_at=int(time.time()))

    def has_completed(self, lecture_id: str) -> bool:
        return lecture_id in self.completed_lectures


@dataclass(frozen=True, slots=True)
class User:
    # No password hash here: repos hand it out only via get_password_hash()
    id: str
    name: str
    email: str
    role: str = "user"
    profile_pic: AssetRef = AssetRef(public_id="", url=DEFAULT_AVATAR_URL)
    enrollments: tuple[Enrollment, ...] = ()

    @staticmethod
    def new(*, name: str, email: str, role: str = "user") -> User:
        return User(id=str(uuid4()), name=name, email=email, role=role)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def enrollment_for(self, course_id: str) -> Enrollment | None:
        return next((e for e in self.enrollments if e.course_id == course_id), None)

    def with_enrollment(self, enrollment: Enrollment) -> User:
        """Insert or replace the enrollment for ``enrollment.course_id``."""
        if self.enrollment_for(enrollment.course_id) is None:
            return replace(self, enrollments=(*self.enrollments, enrollment))
        return replace(
            self,
            enrollments=tuple(
                enrollment if e.course_id == enrollment.course_id else e
                for e in self.enrollments
            ),
        )


def compute_progress(completed: int, total: int) -> float:
    """Percentage of ``total`` lectures completed; 0 for an empty course."""
    if total <= 0:
        return 0.0
    return 100.0 * completed / total


def prune_enrollment(
    enrollment: Enrollment,
    lecture_ids: Collection[str],
    course_id: str | None = None,
    total_lectures: int | None = None,
) -> Enrollment:
    """Drop ``lecture_ids`` from one enrollment.

    Enrollments in ``course_id`` also get their progress recomputed against
    ``total_lectures``, since that course just lost lectures.  Both repo
    implementations call this so the prune policy lives in one place.
    """
    completed = tuple(
        lid for lid in enrollment.completed_lectures if lid not in lecture_ids
    )
    progress = enrollment.progress
    if (
        course_id is not None
        and total_lectures is not None
        and enrollment.course_id == course_id
    ):
        progress = compute_progress(len(completed), total_lectures)
    if completed == enrollment.completed_lectures and progress == enrollment.progress:
        return enrollment
    return replace(enrollment, completed_lectures=completed, progress=progress)
