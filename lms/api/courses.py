"""Course catalog and enrollment endpoints.

Reads are public.  Catalog writes require the admin role; enrollment
endpoints act on the authenticated caller.  Completing a lecture runs
the enrollment engine:

  Client -> POST /v1/courses/{course_id}/modules/{module_id}/lectures/{lecture_id}/complete
  -> ordering check against the course's lecture sequence
  -> re-read course, recompute progress
  -> save enrollments, invalidate progress cache
  -> 200 Enrollment
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from lms.api.dependencies import require_role, require_user
from lms.api.schemas import (
    AssetRefSchema,
    CourseOut,
    EnrollmentOut,
    LectureOut,
    ModuleOut,
)
from lms.models.principal import Principal
from lms.services.catalog_service import (
    LectureDraft,
    ModuleDraft,
    PdfUploads,
    catalog_service,
)
from lms.services.enrollment_service import enrollment_service

router = APIRouter(prefix="/v1/courses", tags=["courses"])

_require_admin = require_role("admin")


# --- Request schemas -------------------------------------------------------


class LectureIn(BaseModel):
    id: str | None = None
    title: str
    video_url: str
    pdf_notes: list[AssetRefSchema] | None = None

    def to_draft(self) -> LectureDraft:
        return LectureDraft(
            id=self.id,
            title=self.title,
            video_url=self.video_url,
            pdf_notes=(
                tuple(n.to_model() for n in self.pdf_notes)
                if self.pdf_notes is not None
                else None
            ),
        )


class ModuleIn(BaseModel):
    id: str | None = None
    title: str
    module_number: int | None = None
    lectures: list[LectureIn] = Field(default_factory=list)

    def to_draft(self) -> ModuleDraft:
        return ModuleDraft(
            id=self.id,
            title=self.title,
            module_number=self.module_number,
            lectures=tuple(lec.to_draft() for lec in self.lectures),
        )


class CourseCreateIn(BaseModel):
    title: str
    description: str
    price: float
    thumbnail: AssetRefSchema
    modules: list[ModuleIn] = Field(default_factory=list)
    # Already-stored PDFs and their "<module>-<lecture>" targets
    uploaded_pdf_notes: list[AssetRefSchema] = Field(default_factory=list)
    pdf_notes_indices: dict[str, int] = Field(default_factory=dict)


class CourseUpdateIn(BaseModel):
    title: str | None = None
    description: str | None = None
    price: float | None = None
    thumbnail: AssetRefSchema | None = None
    modules: list[ModuleIn] | None = None
    uploaded_pdf_notes: list[AssetRefSchema] = Field(default_factory=list)
    pdf_notes_indices: dict[str, int] = Field(default_factory=dict)


class ModuleCreateIn(BaseModel):
    title: str
    module_number: int | None = None
    lectures: list[LectureIn] = Field(default_factory=list)


class ModuleUpdateIn(BaseModel):
    title: str | None = None
    module_number: int | None = None


class LectureCreateIn(BaseModel):
    title: str
    video_url: str
    pdf_notes: list[AssetRefSchema] = Field(default_factory=list)


class LectureUpdateIn(BaseModel):
    title: str | None = None
    video_url: str | None = None
    pdf_notes: list[AssetRefSchema] | None = None


# --- Response schemas ------------------------------------------------------


class LectureEntryOut(BaseModel):
    course_id: str
    module_id: str
    lecture: LectureOut


class OutlineLectureOut(BaseModel):
    module_id: str
    module_title: str
    module_number: int
    lecture_id: str
    lecture_title: str
    completed: bool
    unlocked: bool


class OutlineOut(BaseModel):
    course_id: str
    progress: float
    lectures: list[OutlineLectureOut]


def _uploads(notes: list[AssetRefSchema], indices: dict[str, int]) -> PdfUploads:
    return PdfUploads(notes=tuple(n.to_model() for n in notes), indices=dict(indices))


# --- Public reads ----------------------------------------------------------


@router.get("", response_model=list[CourseOut])
async def list_courses() -> list[CourseOut]:
    return [CourseOut.from_model(c) for c in await catalog_service.list_courses()]


# Declared before /{course_id} so "lectures" is not taken for a course ID
@router.get("/lectures", response_model=list[LectureEntryOut])
async def list_lectures(
    course_id: Annotated[str | None, Query()] = None,
    module_id: Annotated[str | None, Query()] = None,
    search: Annotated[str | None, Query()] = None,
) -> list[LectureEntryOut]:
    entries = await catalog_service.list_lectures(
        course_id=course_id, module_id=module_id, search=search
    )
    return [
        LectureEntryOut(
            course_id=e.course_id,
            module_id=e.module_id,
            lecture=LectureOut.from_model(e.lecture),
        )
        for e in entries
    ]


@router.get("/{course_id}", response_model=CourseOut)
async def get_course(course_id: str) -> CourseOut:
    return CourseOut.from_model(await catalog_service.get_course(course_id))


# --- Admin: courses --------------------------------------------------------


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseCreateIn,
    _admin: Annotated[Principal, Depends(_require_admin)],
) -> CourseOut:
    course = await catalog_service.create_course(
        title=body.title,
        description=body.description,
        price=body.price,
        thumbnail=body.thumbnail.to_model(),
        modules=[m.to_draft() for m in body.modules],
        uploads=_uploads(body.uploaded_pdf_notes, body.pdf_notes_indices),
    )
    return CourseOut.from_model(course)


@router.patch("/{course_id}", response_model=CourseOut)
async def update_course(
    course_id: str,
    body: CourseUpdateIn,
    _admin: Annotated[Principal, Depends(_require_admin)],
) -> CourseOut:
    course = await catalog_service.update_course(
        course_id,
        title=body.title,
        description=body.description,
        price=body.price,
        thumbnail=body.thumbnail.to_model() if body.thumbnail is not None else None,
        modules=(
            [m.to_draft() for m in body.modules] if body.modules is not None else None
        ),
        uploads=_uploads(body.uploaded_pdf_notes, body.pdf_notes_indices),
    )
    return CourseOut.from_model(course)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    course_id: str,
    _admin: Annotated[Principal, Depends(_require_admin)],
) -> Response:
    await catalog_service.delete_course(course_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Admin: modules --------------------------------------------------------


@router.post(
    "/{course_id}/modules",
    response_model=ModuleOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_module(
    course_id: str,
    body: ModuleCreateIn,
    _admin: Annotated[Principal, Depends(_require_admin)],
) -> ModuleOut:
    module = await catalog_service.add_module(
        course_id,
        title=body.title,
        module_number=body.module_number,
        lectures=[lec.to_draft() for lec in body.lectures],
    )
    return ModuleOut.from_model(module)


@router.patch("/{course_id}/modules/{module_id}", response_model=ModuleOut)
async def update_module(
    course_id: str,
    module_id: str,
    body: ModuleUpdateIn,
    _admin: Annotated[Principal, Depends(_require_admin)],
) -> ModuleOut:
    module = await catalog_service.update_module(
        course_id, module_id, title=body.title, module_number=body.module_number
    )
    return ModuleOut.from_model(module)


@router.delete(
    "/{course_id}/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_module(
    course_id: str,
    module_id: str,
    _admin: Annotated[Principal, Depends(_require_admin)],
) -> Response:
    await catalog_service.delete_module(course_id, module_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Admin: lectures -------------------------------------------------------


@router.post(
    "/{course_id}/modules/{module_id}/lectures",
    response_model=LectureOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_lecture(
    course_id: str,
    module_id: str,
    body: LectureCreateIn,
    _admin: Annotated[Principal, Depends(_require_admin)],
) -> LectureOut:
    lecture = await catalog_service.add_lecture(
        course_id,
        module_id,
        title=body.title,
        video_url=body.video_url,
        pdf_notes=[n.to_model() for n in body.pdf_notes],
    )
    return LectureOut.from_model(lecture)


@router.patch(
    "/{course_id}/modules/{module_id}/lectures/{lecture_id}",
    response_model=LectureOut,
)
async def update_lecture(
    course_id: str,
    module_id: str,
    lecture_id: str,
    body: LectureUpdateIn,
    _admin: Annotated[Principal, Depends(_require_admin)],
) -> LectureOut:
    lecture = await catalog_service.update_lecture(
        course_id,
        module_id,
        lecture_id,
        title=body.title,
        video_url=body.video_url,
        pdf_notes=(
            [n.to_model() for n in body.pdf_notes]
            if body.pdf_notes is not None
            else None
        ),
    )
    return LectureOut.from_model(lecture)


@router.delete(
    "/{course_id}/modules/{module_id}/lectures/{lecture_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_lecture(
    course_id: str,
    module_id: str,
    lecture_id: str,
    _admin: Annotated[Principal, Depends(_require_admin)],
) -> Response:
    await catalog_service.delete_lecture(course_id, module_id, lecture_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Enrollment ------------------------------------------------------------


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_course(
    course_id: str,
    principal: Annotated[Principal, Depends(require_user)],
) -> EnrollmentOut:
    enrollment = await enrollment_service.enroll(course_id, principal.user_id)
    return EnrollmentOut.from_model(enrollment)


@router.post(
    "/{course_id}/modules/{module_id}/lectures/{lecture_id}/complete",
    response_model=EnrollmentOut,
)
async def complete_lecture(
    course_id: str,
    module_id: str,
    lecture_id: str,
    principal: Annotated[Principal, Depends(require_user)],
) -> EnrollmentOut:
    enrollment = await enrollment_service.mark_lecture_complete(
        course_id, module_id, lecture_id, principal.user_id
    )
    return EnrollmentOut.from_model(enrollment)


@router.get("/{course_id}/progress", response_model=EnrollmentOut)
async def get_progress(
    course_id: str,
    principal: Annotated[Principal, Depends(require_user)],
) -> EnrollmentOut:
    enrollment = await enrollment_service.get_enrollment(course_id, principal.user_id)
    return EnrollmentOut.from_model(enrollment)


@router.get("/{course_id}/outline", response_model=OutlineOut)
async def get_outline(
    course_id: str,
    principal: Annotated[Principal, Depends(require_user)],
) -> OutlineOut:
    enrollment, entries = await enrollment_service.course_outline(
        course_id, principal.user_id
    )
    return OutlineOut(
        course_id=course_id,
        progress=round(enrollment.progress, 2),
        lectures=[
            OutlineLectureOut(
                module_id=e.module_id,
                module_title=e.module_title,
                module_number=e.module_number,
                lecture_id=e.lecture_id,
                lecture_title=e.lecture_title,
                completed=e.completed,
                unlocked=e.unlocked,
            )
            for e in entries
        ],
    )
