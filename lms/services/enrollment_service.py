"""Enrollment and progress engine.

Three rules live here and nowhere else:

* a learner unlocks lectures in catalog order: module list order, then
  lecture list order inside each module.  Lecture k may be completed only
  once lecture k-1 is in ``completed_lectures``;
* ``progress`` is recomputed from the *current* lecture total on every
  write that touches an enrollment;
* catalog deletions reach back into the identity store.  Deleted lecture
  IDs are pruned from every learner, a deleted course takes its
  enrollments with it.

There is no cross-document transaction.  ``mark_lecture_complete`` reads
the course a second time immediately before writing, so a lecture that
disappeared between the ordering check and the write is rejected instead
of persisted as a dangling ID.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Collection
from dataclasses import asdict, dataclass, replace

from lms.core.errors import (
    AlreadyEnrolledError,
    CourseNotFoundError,
    InternalError,
    LectureLockedError,
    LectureNotFoundError,
    ModuleNotFoundError,
    NotEnrolledError,
    StaleLectureError,
    UserNotFoundError,
)
from lms.core.metrics import (
    CACHE_OPERATIONS,
    CASCADE_PRUNES,
    ENROLLMENTS,
    LECTURE_COMPLETIONS,
)
from lms.models.course import Course
from lms.models.user import Enrollment, User, compute_progress
from lms.repos.course_repo import CourseRepo, course_repo
from lms.repos.user_repo import UserRepo, user_repo
from lms.services.cache import (
    CacheService,
    cache_service,
    progress_key,
    progress_pattern,
)

logger = logging.getLogger(__name__)

# Long enough to absorb a learner refreshing the dashboard, short enough
# that a missed invalidation heals within minutes.
PROGRESS_CACHE_TTL = 300


@dataclass(frozen=True, slots=True)
class OutlineEntry:
    """One lecture of a course as a given learner sees it."""

    module_id: str
    module_title: str
    module_number: int
    lecture_id: str
    lecture_title: str
    completed: bool
    unlocked: bool


class EnrollmentService:
    def __init__(
        self, courses: CourseRepo, users: UserRepo, cache: CacheService
    ) -> None:
        self._courses = courses
        self._users = users
        self._cache = cache

    # --- lookups -----------------------------------------------------------

    async def _require_course(self, course_id: str) -> Course:
        course = await self._courses.get_by_id(course_id)
        if course is None:
            raise CourseNotFoundError()
        return course

    async def _require_user(self, user_id: str) -> User:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    # --- enroll ------------------------------------------------------------

    async def enroll(self, course_id: str, user_id: str) -> Enrollment:
        await self._require_course(course_id)
        user = await self._require_user(user_id)

        if user.enrollment_for(course_id) is not None:
            ENROLLMENTS.labels(result="already_enrolled").inc()
            logger.warning(
                "Enroll rejected: already enrolled",
                extra={"user_id": user_id, "course_id": course_id},
            )
            raise AlreadyEnrolledError()

        enrollment = Enrollment.new(course_id=course_id)
        try:
            added = await self._users.add_enrollment(user_id, enrollment)
        except ValueError:
            # Lost a race with a concurrent enroll for the same course
            ENROLLMENTS.labels(result="already_enrolled").inc()
            raise AlreadyEnrolledError() from None
        if not added:
            # User deleted between read and write
            raise UserNotFoundError()

        await self._cache_enrollment(user_id, enrollment)
        ENROLLMENTS.labels(result="created").inc()
        logger.info(
            "User enrolled", extra={"user_id": user_id, "course_id": course_id}
        )
        return enrollment

    # --- mark complete -----------------------------------------------------

    async def mark_lecture_complete(
        self, course_id: str, module_id: str, lecture_id: str, user_id: str
    ) -> Enrollment:
        """Record ``lecture_id`` as completed by ``user_id``.

        Completing an already-completed lecture returns the enrollment
        unchanged, even if an earlier lecture was pruned since.  The
        idempotence check runs before the ordering check for that reason.
        """
        course = await self._require_course(course_id)
        module = course.find_module(module_id)
        if module is None:
            raise ModuleNotFoundError()
        if module.find_lecture(lecture_id) is None:
            raise LectureNotFoundError()
        user = await self._require_user(user_id)

        enrollment = user.enrollment_for(course_id)
        if enrollment is None:
            LECTURE_COMPLETIONS.labels(result="not_enrolled").inc()
            raise NotEnrolledError()

        if enrollment.has_completed(lecture_id):
            LECTURE_COMPLETIONS.labels(result="already_completed").inc()
            return enrollment

        sequence = course.lecture_sequence()
        position = sequence.index(lecture_id)
        if position > 0 and not enrollment.has_completed(sequence[position - 1]):
            LECTURE_COMPLETIONS.labels(result="locked").inc()
            logger.warning(
                "Completion rejected: previous lecture incomplete",
                extra={
                    "user_id": user_id,
                    "course_id": course_id,
                    "lecture_id": lecture_id,
                },
            )
            raise LectureLockedError()

        # Re-validate against the course as it is right now
        fresh = await self._courses.get_by_id(course_id)
        current = fresh.lecture_sequence() if fresh is not None else ()
        if lecture_id not in current:
            LECTURE_COMPLETIONS.labels(result="stale").inc()
            logger.warning(
                "Completion rejected: lecture removed concurrently",
                extra={
                    "user_id": user_id,
                    "course_id": course_id,
                    "lecture_id": lecture_id,
                },
            )
            raise StaleLectureError()

        existing = set(current)
        completed = (
            *(lid for lid in enrollment.completed_lectures if lid in existing),
            lecture_id,
        )
        updated = replace(
            enrollment,
            completed_lectures=completed,
            progress=compute_progress(len(completed), len(current)),
        )
        if not await self._users.save_enrollment(user_id, updated):
            # Enrollment removed (course deleted) after the user was read
            LECTURE_COMPLETIONS.labels(result="not_enrolled").inc()
            raise NotEnrolledError()

        await self._cache_enrollment(user_id, updated)
        LECTURE_COMPLETIONS.labels(result="completed").inc()
        logger.info(
            "Lecture completed progress=%.2f",
            updated.progress,
            extra={
                "user_id": user_id,
                "course_id": course_id,
                "module_id": module_id,
                "lecture_id": lecture_id,
            },
        )
        return updated

    # --- cascade -----------------------------------------------------------

    async def cascade_prune(
        self,
        lecture_ids: Collection[str] = (),
        course_id: str | None = None,
        deleted_course: bool = False,
    ) -> int:
        """Clean learner state after a catalog deletion has committed.

        Returns the number of users touched.  A failure here cannot roll
        back the catalog change, so it is logged with the affected IDs and
        raised as InternalError.
        """
        kind = "course" if deleted_course else "lectures"
        ids = tuple(lecture_ids)
        try:
            if deleted_course:
                if course_id is None:
                    raise ValueError("course_id is required for a course prune")
                touched = await self._users.remove_enrollments(course_id)
            else:
                total = None
                if course_id is not None:
                    course = await self._courses.get_by_id(course_id)
                    if course is not None:
                        total = course.total_lectures()
                touched = await self._users.prune_completed_lectures(
                    ids, course_id=course_id, total_lectures=total
                )
        except Exception as exc:
            CASCADE_PRUNES.labels(kind=kind, outcome="failed").inc()
            logger.exception(
                "Cascade prune failed lecture_ids=%s",
                list(ids),
                extra={"course_id": course_id, "error_kind": "internal"},
            )
            raise InternalError("failed to clean up enrollments") from exc

        if course_id is not None:
            await self._cache.delete_pattern(progress_pattern(course_id))
        CASCADE_PRUNES.labels(kind=kind, outcome="ok").inc()
        logger.info(
            "Cascade prune kind=%s lectures=%d users=%d",
            kind,
            len(ids),
            touched,
            extra={"course_id": course_id},
        )
        return touched

    async def _cache_enrollment(self, user_id: str, enrollment: Enrollment) -> None:
        await self._cache.set(
            progress_key(enrollment.course_id, user_id),
            json.dumps(asdict(enrollment)),
            ttl_seconds=PROGRESS_CACHE_TTL,
        )

    # --- reads -------------------------------------------------------------

    async def get_enrollment(self, course_id: str, user_id: str) -> Enrollment:
        """Read-through cached enrollment snapshot."""
        key = progress_key(course_id, user_id)
        cached = await self._cache.get(key)
        if cached is not None:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return _enrollment_from_json(cached)

        CACHE_OPERATIONS.labels(operation="miss").inc()
        user = await self._require_user(user_id)
        enrollment = user.enrollment_for(course_id)
        if enrollment is None:
            raise NotEnrolledError()

        # Only fill an empty key: a completion that wrote meanwhile wins
        await self._cache.set_if_absent(
            key, json.dumps(asdict(enrollment)), ttl_seconds=PROGRESS_CACHE_TTL
        )
        return enrollment

    async def course_outline(
        self, course_id: str, user_id: str
    ) -> tuple[Enrollment, list[OutlineEntry]]:
        course = await self._require_course(course_id)
        user = await self._require_user(user_id)
        enrollment = user.enrollment_for(course_id)
        if enrollment is None:
            raise NotEnrolledError()

        entries: list[OutlineEntry] = []
        previous_done = True  # the first lecture is always open
        for module in course.modules:
            for lecture in module.lectures:
                done = enrollment.has_completed(lecture.id)
                entries.append(
                    OutlineEntry(
                        module_id=module.id,
                        module_title=module.title,
                        module_number=module.module_number,
                        lecture_id=lecture.id,
                        lecture_title=lecture.title,
                        completed=done,
                        unlocked=done or previous_done,
                    )
                )
                previous_done = done
        return enrollment, entries


def _enrollment_from_json(raw: str) -> Enrollment:
    data = json.loads(raw)
    return Enrollment(
        course_id=data["course_id"],
        completed_lectures=tuple(data["completed_lectures"]),
        progress=float(data["progress"]),
        enrolled_at=int(data["enrolled_at"]),
    )


enrollment_service = EnrollmentService(course_repo, user_repo, cache_service)
