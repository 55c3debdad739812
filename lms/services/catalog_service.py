"""Course catalog: Course -> Module -> Lecture administration.

Every edit is read-modify-save of the whole course document.  Deletions
that remove lectures hand the removed IDs to the enrollment engine once
the catalog write has committed.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace

from lms.core.errors import (
    CourseNotFoundError,
    LectureNotFoundError,
    ModuleNotFoundError,
    ValidationError,
)
from lms.models.course import AssetRef, Course, Lecture, Module
from lms.repos.course_repo import CourseRepo, course_repo
from lms.services.enrollment_service import EnrollmentService, enrollment_service

logger = logging.getLogger(__name__)


# --- Input shapes ------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LectureDraft:
    title: str
    video_url: str
    # None on update means "keep what is stored"
    pdf_notes: tuple[AssetRef, ...] | None = None
    id: str | None = None


@dataclass(frozen=True, slots=True)
class ModuleDraft:
    title: str
    module_number: int | None = None
    lectures: tuple[LectureDraft, ...] = ()
    id: str | None = None


@dataclass(frozen=True, slots=True)
class PdfUploads:
    """Already-stored PDF references plus where each one goes.

    ``indices`` maps ``"<module index>-<lecture index>"`` (zero-based
    positions in the submitted module list) to a position in ``notes``.
    Out-of-range positions are ignored.
    """

    notes: tuple[AssetRef, ...] = ()
    indices: Mapping[str, int] = field(default_factory=dict)

    def for_lecture(self, m_index: int, l_index: int) -> list[AssetRef]:
        key = f"{m_index}-{l_index}"
        return [
            self.notes[i]
            for k, i in self.indices.items()
            if k == key and 0 <= i < len(self.notes)
        ]


@dataclass(frozen=True, slots=True)
class LectureEntry:
    course_id: str
    module_id: str
    lecture: Lecture


# --- Validation helpers -----------------------------------------------------


def _require_text(value: str | None, what: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{what} is required")
    return value.strip()


def _require_price(price: float) -> float:
    if not math.isfinite(price) or price < 0:
        raise ValidationError("price must be non-negative")
    return float(price)


def _require_asset(asset: AssetRef, what: str) -> AssetRef:
    if not asset.is_valid():
        raise ValidationError(f"{what} requires public_id and url")
    return asset


def _require_module_number(n: int) -> int:
    if n <= 0:
        raise ValidationError("module_number must be a positive integer")
    return n


def _assign_numbers(requested: Sequence[int | None]) -> list[int]:
    """Resolve module numbers for a freshly submitted module list.

    Missing or already-taken numbers become ``max + 1`` of those assigned
    so far; explicit non-positive numbers are rejected.
    """
    used: list[int] = []
    for n in requested:
        if n is not None:
            _require_module_number(n)
        if n is None or n in used:
            n = max(used, default=0) + 1
        used.append(n)
    return used


# --- Service ----------------------------------------------------------------


class CatalogService:
    def __init__(self, courses: CourseRepo, enrollments: EnrollmentService) -> None:
        self._courses = courses
        self._enrollments = enrollments

    async def _require_course(self, course_id: str) -> Course:
        course = await self._courses.get_by_id(course_id)
        if course is None:
            raise CourseNotFoundError()
        return course

    async def _save(self, course: Course) -> Course:
        if not await self._courses.save(course):
            # Deleted between our read and write
            raise CourseNotFoundError()
        return course

    # --- courses -----------------------------------------------------------

    async def create_course(
        self,
        *,
        title: str,
        description: str,
        price: float,
        thumbnail: AssetRef,
        modules: Sequence[ModuleDraft] = (),
        uploads: PdfUploads | None = None,
    ) -> Course:
        uploads = uploads or PdfUploads()
        numbers = _assign_numbers([m.module_number for m in modules])
        built = []
        for m_index, (draft, number) in enumerate(zip(modules, numbers, strict=True)):
            lectures = []
            for l_index, lec in enumerate(draft.lectures):
                attached = uploads.for_lecture(m_index, l_index)
                notes = attached or [
                    _require_asset(n, "pdf note") for n in lec.pdf_notes or ()
                ]
                lectures.append(
                    Lecture.new(
                        title=_require_text(lec.title, "lecture title"),
                        video_url=_require_text(lec.video_url, "video_url"),
                        pdf_notes=tuple(notes),
                    )
                )
            built.append(
                Module.new(
                    title=_require_text(draft.title, "module title"),
                    module_number=number,
                    lectures=tuple(lectures),
                )
            )

        course = Course.new(
            title=_require_text(title, "title"),
            description=_require_text(description, "description"),
            price=_require_price(price),
            thumbnail=_require_asset(thumbnail, "thumbnail"),
            modules=tuple(built),
        )
        await self._courses.add(course)
        logger.info(
            "Course created modules=%d lectures=%d",
            len(course.modules),
            course.total_lectures(),
            extra={"course_id": course.id},
        )
        return course

    async def list_courses(self) -> list[Course]:
        return await self._courses.list_all()

    async def get_course(self, course_id: str) -> Course:
        return await self._require_course(course_id)

    async def update_course(
        self,
        course_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        price: float | None = None,
        thumbnail: AssetRef | None = None,
        modules: Sequence[ModuleDraft] | None = None,
        uploads: PdfUploads | None = None,
    ) -> Course:
        """Partial update.  Only the arguments that are not None change.

        A provided ``modules`` list replaces the stored one.  Modules and
        lectures that carry the ID of an existing entry keep that ID (and,
        for lectures, their stored PDF notes unless new ones are given);
        anything else gets a fresh ID.  Lectures left out are pruned from
        learners.
        """
        course = await self._require_course(course_id)
        before = set(course.lecture_sequence())

        changes: dict = {}
        if title is not None:
            changes["title"] = _require_text(title, "title")
        if description is not None:
            changes["description"] = _require_text(description, "description")
        if price is not None:
            changes["price"] = _require_price(price)
        if thumbnail is not None:
            changes["thumbnail"] = _require_asset(thumbnail, "thumbnail")

        updated = replace(course, **changes)
        if modules is not None:
            updated = updated.with_modules(
                self._merge_modules(course, modules, uploads or PdfUploads())
            )
        else:
            updated = updated.with_modules(updated.modules)

        await self._save(updated)
        logger.info("Course updated", extra={"course_id": course_id})

        dropped = before - set(updated.lecture_sequence())
        if dropped:
            await self._enrollments.cascade_prune(dropped, course_id=course_id)
        return updated

    def _merge_modules(
        self, course: Course, drafts: Sequence[ModuleDraft], uploads: PdfUploads
    ) -> tuple[Module, ...]:
        stored_lectures = {
            lec.id: lec for m in course.modules for lec in m.lectures
        }
        requested = []
        for draft in drafts:
            existing = course.find_module(draft.id) if draft.id else None
            if draft.module_number is None and existing is not None:
                requested.append(existing.module_number)
            else:
                requested.append(draft.module_number)
        numbers = _assign_numbers(requested)

        merged = []
        # A stored ID may be claimed once; repeats would break the sequence
        seen_modules: set[str] = set()
        seen_lectures: set[str] = set()
        for m_index, (draft, number) in enumerate(zip(drafts, numbers, strict=True)):
            existing = course.find_module(draft.id) if draft.id else None
            if existing is not None:
                if existing.id in seen_modules:
                    raise ValidationError("duplicate module id")
                seen_modules.add(existing.id)
            lectures = []
            for l_index, lec in enumerate(draft.lectures):
                kept = stored_lectures.get(lec.id) if lec.id else None
                if kept is not None:
                    if kept.id in seen_lectures:
                        raise ValidationError("duplicate lecture id")
                    seen_lectures.add(kept.id)
                base = lec.pdf_notes if lec.pdf_notes is not None else (
                    kept.pdf_notes if kept is not None else ()
                )
                notes = [n for n in base if n.is_valid()]
                notes += uploads.for_lecture(m_index, l_index)
                lectures.append(
                    Lecture.new(
                        id=kept.id if kept is not None else None,
                        title=_require_text(lec.title, "lecture title"),
                        video_url=_require_text(lec.video_url, "video_url"),
                        pdf_notes=tuple(notes),
                    )
                )
            merged.append(
                Module.new(
                    id=existing.id if existing is not None else None,
                    title=_require_text(draft.title, "module title"),
                    module_number=number,
                    lectures=tuple(lectures),
                )
            )
        return tuple(merged)

    async def delete_course(self, course_id: str) -> Course:
        course = await self._courses.delete(course_id)
        if course is None:
            raise CourseNotFoundError()
        logger.info("Course deleted", extra={"course_id": course_id})
        await self._enrollments.cascade_prune(course_id=course_id, deleted_course=True)
        return course

    # --- modules -----------------------------------------------------------

    async def add_module(
        self,
        course_id: str,
        *,
        title: str,
        module_number: int | None = None,
        lectures: Sequence[LectureDraft] = (),
    ) -> Module:
        course = await self._require_course(course_id)
        top = course.max_module_number()
        if module_number is None or module_number <= top:
            # Not an error: the module is appended after the current last one
            module_number = top + 1

        module = Module.new(
            title=_require_text(title, "module title"),
            module_number=module_number,
            lectures=tuple(
                Lecture.new(
                    title=_require_text(lec.title, "lecture title"),
                    video_url=_require_text(lec.video_url, "video_url"),
                    pdf_notes=tuple(
                        _require_asset(n, "pdf note") for n in lec.pdf_notes or ()
                    ),
                )
                for lec in lectures
            ),
        )
        await self._save(course.with_modules((*course.modules, module)))
        logger.info(
            "Module added number=%d",
            module.module_number,
            extra={"course_id": course_id, "module_id": module.id},
        )
        return module

    async def update_module(
        self,
        course_id: str,
        module_id: str,
        *,
        title: str | None = None,
        module_number: int | None = None,
    ) -> Module:
        course = await self._require_course(course_id)
        module = course.find_module(module_id)
        if module is None:
            raise ModuleNotFoundError()

        if title is not None:
            module = replace(module, title=_require_text(title, "module title"))
        if module_number is not None:
            _require_module_number(module_number)
            taken = {m.module_number for m in course.modules if m.id != module_id}
            if module_number in taken:
                module_number = course.max_module_number() + 1
            module = replace(module, module_number=module_number)

        await self._save(course.with_module(module))
        logger.info(
            "Module updated", extra={"course_id": course_id, "module_id": module_id}
        )
        return module

    async def delete_module(self, course_id: str, module_id: str) -> Module:
        course = await self._require_course(course_id)
        module = course.find_module(module_id)
        if module is None:
            raise ModuleNotFoundError()

        await self._save(course.without_module(module_id))
        logger.info(
            "Module deleted lectures=%d",
            len(module.lectures),
            extra={"course_id": course_id, "module_id": module_id},
        )
        if module.lectures:
            await self._enrollments.cascade_prune(
                module.lecture_ids(), course_id=course_id
            )
        return module

    # --- lectures ----------------------------------------------------------

    async def _require_module(self, course_id: str, module_id: str) -> tuple[Course, Module]:
        course = await self._require_course(course_id)
        module = course.find_module(module_id)
        if module is None:
            raise ModuleNotFoundError()
        return course, module

    async def add_lecture(
        self,
        course_id: str,
        module_id: str,
        *,
        title: str,
        video_url: str,
        pdf_notes: Sequence[AssetRef] = (),
    ) -> Lecture:
        course, module = await self._require_module(course_id, module_id)
        lecture = Lecture.new(
            title=_require_text(title, "lecture title"),
            video_url=_require_text(video_url, "video_url"),
            pdf_notes=tuple(_require_asset(n, "pdf note") for n in pdf_notes),
        )
        module = replace(module, lectures=(*module.lectures, lecture))
        await self._save(course.with_module(module))
        logger.info(
            "Lecture added",
            extra={"course_id": course_id, "module_id": module_id, "lecture_id": lecture.id},
        )
        return lecture

    async def update_lecture(
        self,
        course_id: str,
        module_id: str,
        lecture_id: str,
        *,
        title: str | None = None,
        video_url: str | None = None,
        pdf_notes: Sequence[AssetRef] | None = None,
    ) -> Lecture:
        course, module = await self._require_module(course_id, module_id)
        lecture = module.find_lecture(lecture_id)
        if lecture is None:
            raise LectureNotFoundError()

        if title is not None:
            lecture = replace(lecture, title=_require_text(title, "lecture title"))
        if video_url is not None:
            lecture = replace(lecture, video_url=_require_text(video_url, "video_url"))
        if pdf_notes is not None:
            lecture = replace(
                lecture,
                pdf_notes=tuple(_require_asset(n, "pdf note") for n in pdf_notes),
            )

        module = replace(
            module,
            lectures=tuple(lecture if lec.id == lecture_id else lec for lec in module.lectures),
        )
        await self._save(course.with_module(module))
        return lecture

    async def delete_lecture(self, course_id: str, module_id: str, lecture_id: str) -> Lecture:
        course, module = await self._require_module(course_id, module_id)
        lecture = module.find_lecture(lecture_id)
        if lecture is None:
            raise LectureNotFoundError()

        module = replace(
            module, lectures=tuple(lec for lec in module.lectures if lec.id != lecture_id)
        )
        await self._save(course.with_module(module))
        logger.info(
            "Lecture deleted",
            extra={"course_id": course_id, "module_id": module_id, "lecture_id": lecture_id},
        )
        await self._enrollments.cascade_prune((lecture_id,), course_id=course_id)
        return lecture

    async def list_lectures(
        self,
        *,
        course_id: str | None = None,
        module_id: str | None = None,
        search: str | None = None,
    ) -> list[LectureEntry]:
        """Flat lecture listing across the catalog.

        ``search`` is a case-insensitive substring of the lecture title.
        ``module_id`` without ``course_id`` matches that module wherever it
        lives.
        """
        if course_id is not None:
            course = await self._require_course(course_id)
            if module_id is not None and course.find_module(module_id) is None:
                raise ModuleNotFoundError()
            courses = [course]
        else:
            courses = await self._courses.list_all()

        needle = search.strip().lower() if search else ""
        return [
            LectureEntry(course_id=c.id, module_id=m.id, lecture=lec)
            for c in courses
            for m in c.modules
            if module_id is None or m.id == module_id
            for lec in m.lectures
            if needle in lec.title.lower()
        ]


catalog_service = CatalogService(course_repo, enrollment_service)
