"""Request/response schemas shared by the course and user routers."""

from __future__ import annotations

from pydantic import BaseModel

from lms.models.course import AssetRef, Course, Lecture, Module
from lms.models.user import Enrollment


class AssetRefSchema(BaseModel):
    public_id: str
    url: str

    def to_model(self) -> AssetRef:
        return AssetRef(public_id=self.public_id.strip(), url=self.url.strip())

    @classmethod
    def from_model(cls, asset: AssetRef) -> AssetRefSchema:
        return cls(public_id=asset.public_id, url=asset.url)


class LectureOut(BaseModel):
    id: str
    title: str
    video_url: str
    pdf_notes: list[AssetRefSchema]

    @classmethod
    def from_model(cls, lecture: Lecture) -> LectureOut:
        return cls(
            id=lecture.id,
            title=lecture.title,
            video_url=lecture.video_url,
            pdf_notes=[AssetRefSchema.from_model(n) for n in lecture.pdf_notes],
        )


class ModuleOut(BaseModel):
    id: str
    title: str
    module_number: int
    lectures: list[LectureOut]

    @classmethod
    def from_model(cls, module: Module) -> ModuleOut:
        return cls(
            id=module.id,
            title=module.title,
            module_number=module.module_number,
            lectures=[LectureOut.from_model(lec) for lec in module.lectures],
        )


class CourseOut(BaseModel):
    id: str
    title: str
    description: str
    price: float
    thumbnail: AssetRefSchema
    modules: list[ModuleOut]
    total_lectures: int
    created_at: int
    updated_at: int

    @classmethod
    def from_model(cls, course: Course) -> CourseOut:
        return cls(
            id=course.id,
            title=course.title,
            description=course.description,
            price=course.price,
            thumbnail=AssetRefSchema.from_model(course.thumbnail),
            modules=[ModuleOut.from_model(m) for m in course.modules],
            total_lectures=course.total_lectures(),
            created_at=course.created_at,
            updated_at=course.updated_at,
        )


class EnrollmentOut(BaseModel):
    course_id: str
    completed_lectures: list[str]
    progress: float
    enrolled_at: int

    @classmethod
    def from_model(cls, enrollment: Enrollment) -> EnrollmentOut:
        return cls(
            course_id=enrollment.course_id,
            completed_lectures=list(enrollment.completed_lectures),
            progress=round(enrollment.progress, 2),
            enrolled_at=enrollment.enrolled_at,
        )
