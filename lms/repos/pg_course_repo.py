"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lms.db.tables import CourseRow
from lms.models.course import AssetRef, Course, Lecture, Module


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy.

    One transaction per call; ``save`` locks the row so two concurrent
    catalog edits to the same course serialize instead of interleaving.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, course_id: str) -> Course | None:
        async with self._session_factory() as session:
            row = await session.get(CourseRow, course_id)
            return _row_to_course(row) if row is not None else None

    async def list_all(self) -> list[Course]:
        async with self._session_factory() as session:
            stmt = select(CourseRow).order_by(CourseRow.created_at, CourseRow.id)
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_course(r) for r in rows]

    async def add(self, course: Course) -> None:
        async with self._session_factory() as session, session.begin():
            session.add(_course_to_row(course))

    async def save(self, course: Course) -> bool:
        async with self._session_factory() as session, session.begin():
            row = await session.get(CourseRow, course.id, with_for_update=True)
            if row is None:
                return False
            row.title = course.title
            row.description = course.description
            row.price = course.price
            row.thumbnail = asset_to_json(course.thumbnail)
            row.modules = modules_to_json(course.modules)
            row.updated_at = course.updated_at
            return True

    async def delete(self, course_id: str) -> Course | None:
        async with self._session_factory() as session, session.begin():
            stmt = delete(CourseRow).where(CourseRow.id == course_id).returning(CourseRow)
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_course(row) if row is not None else None


# --- document <-> dataclass ------------------------------------------------


def asset_to_json(asset: AssetRef) -> dict:
    return {"public_id": asset.public_id, "url": asset.url}


def asset_from_json(data: dict) -> AssetRef:
    return AssetRef(public_id=data.get("public_id", ""), url=data.get("url", ""))


def modules_to_json(modules: tuple[Module, ...]) -> list[dict]:
    return [
        {
            "id": m.id,
            "title": m.title,
            "module_number": m.module_number,
            "lectures": [
                {
                    "id": lec.id,
                    "title": lec.title,
                    "video_url": lec.video_url,
                    "pdf_notes": [asset_to_json(p) for p in lec.pdf_notes],
                }
                for lec in m.lectures
            ],
        }
        for m in modules
    ]


def modules_from_json(data: list[dict]) -> tuple[Module, ...]:
    return tuple(
        Module(
            id=m["id"],
            title=m["title"],
            module_number=int(m["module_number"]),
            lectures=tuple(
                Lecture(
                    id=lec["id"],
                    title=lec["title"],
                    video_url=lec["video_url"],
                    pdf_notes=tuple(asset_from_json(p) for p in lec.get("pdf_notes", [])),
                )
                for lec in m.get("lectures", [])
            ),
        )
        for m in data
    )


def _course_to_row(course: Course) -> CourseRow:
    return CourseRow(
        id=course.id,
        title=course.title,
        description=course.description,
        price=course.price,
        thumbnail=asset_to_json(course.thumbnail),
        modules=modules_to_json(course.modules),
        created_at=course.created_at,
        updated_at=course.updated_at,
    )


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        description=row.description,
        price=float(row.price),
        thumbnail=asset_from_json(row.thumbnail),
        modules=modules_from_json(row.modules or []),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
