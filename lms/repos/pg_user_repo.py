"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from collections.abc import Collection

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lms.db.tables import EnrollmentRow, UserRow
from lms.models.course import AssetRef
from lms.models.user import Enrollment, User, prune_enrollment
from lms.repos.pg_course_repo import asset_from_json, asset_to_json


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, user_id: str) -> User | None:
        async with self._session_factory() as session:
            row = await session.get(UserRow, user_id)
            if row is None:
                return None
            return _row_to_user(row, await _load_enrollments(session, row.id))

    async def get_by_email(self, email: str) -> User | None:
        async with self._session_factory() as session:
            stmt = select(UserRow).where(UserRow.email == email)
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                return None
            return _row_to_user(row, await _load_enrollments(session, row.id))

    async def add(self, user: User, password_hash: str) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                session.add(
                    UserRow(
                        id=user.id,
                        name=user.name,
                        email=user.email,
                        password_hash=password_hash,
                        role=user.role,
                        profile_pic=asset_to_json(user.profile_pic),
                    )
                )
        except IntegrityError:
            # Same contract as the in-memory repo
            raise ValueError("email already exists") from None

    async def get_password_hash(self, user_id: str) -> str | None:
        async with self._session_factory() as session:
            stmt = select(UserRow.password_hash).where(UserRow.id == user_id)
            return (await session.execute(stmt)).scalar_one_or_none()

    async def update_password_hash(self, user_id: str, password_hash: str) -> bool:
        async with self._session_factory() as session, session.begin():
            stmt = (
                update(UserRow)
                .where(UserRow.id == user_id)
                .values(password_hash=password_hash)
            )
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def update_profile(
        self,
        user_id: str,
        *,
        name: str | None = None,
        profile_pic: AssetRef | None = None,
    ) -> User | None:
        async with self._session_factory() as session, session.begin():
            row = await session.get(UserRow, user_id, with_for_update=True)
            if row is None:
                return None
            if name is not None:
                row.name = name
            if profile_pic is not None:
                row.profile_pic = asset_to_json(profile_pic)
            return _row_to_user(row, await _load_enrollments(session, row.id))

    async def add_enrollment(self, user_id: str, enrollment: Enrollment) -> bool:
        async with self._session_factory() as session, session.begin():
            # Lock the parent row so two enrolls for one user run one at a time
            row = await session.get(UserRow, user_id, with_for_update=True)
            if row is None:
                return False
            if await session.get(EnrollmentRow, (user_id, enrollment.course_id)):
                raise ValueError("already enrolled")
            session.add(_enrollment_to_row(user_id, enrollment))
            return True

    async def save_enrollment(self, user_id: str, enrollment: Enrollment) -> bool:
        """Overwrite one (user, course) row; the user's other rows are untouched.

        Returns False when the row is gone, e.g. the course was deleted and
        its enrollments removed after the caller read the user.  A write
        never brings such a row back.
        """
        async with self._session_factory() as session, session.begin():
            stmt = (
                update(EnrollmentRow)
                .where(
                    EnrollmentRow.user_id == user_id,
                    EnrollmentRow.course_id == enrollment.course_id,
                )
                .values(
                    completed_lectures=list(enrollment.completed_lectures),
                    progress=enrollment.progress,
                )
            )
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def prune_completed_lectures(
        self,
        lecture_ids: Collection[str],
        *,
        course_id: str | None = None,
        total_lectures: int | None = None,
    ) -> int:
        ids = list(lecture_ids)
        conditions = [EnrollmentRow.completed_lectures.overlap(ids)] if ids else []
        if course_id is not None and total_lectures is not None:
            conditions.append(EnrollmentRow.course_id == course_id)
        if not conditions:
            return 0

        async with self._session_factory() as session, session.begin():
            stmt = select(EnrollmentRow).where(or_(*conditions)).with_for_update()
            rows = (await session.execute(stmt)).scalars().all()
            touched: set[str] = set()
            for row in rows:
                before = _row_to_enrollment(row)
                after = prune_enrollment(before, frozenset(ids), course_id, total_lectures)
                if after != before:
                    row.completed_lectures = list(after.completed_lectures)
                    row.progress = after.progress
                    touched.add(row.user_id)
            return len(touched)

    async def remove_enrollments(self, course_id: str) -> int:
        async with self._session_factory() as session, session.begin():
            stmt = delete(EnrollmentRow).where(EnrollmentRow.course_id == course_id)
            result = await session.execute(stmt)
            return result.rowcount


async def _load_enrollments(session: AsyncSession, user_id: str) -> list[EnrollmentRow]:
    stmt = (
        select(EnrollmentRow)
        .where(EnrollmentRow.user_id == user_id)
        .order_by(EnrollmentRow.enrolled_at, EnrollmentRow.course_id)
    )
    return list((await session.execute(stmt)).scalars().all())


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        course_id=row.course_id,
        completed_lectures=tuple(row.completed_lectures or ()),
        progress=float(row.progress),
        enrolled_at=row.enrolled_at,
    )


def _enrollment_to_row(user_id: str, e: Enrollment) -> EnrollmentRow:
    return EnrollmentRow(
        user_id=user_id,
        course_id=e.course_id,
        completed_lectures=list(e.completed_lectures),
        progress=e.progress,
        enrolled_at=e.enrolled_at,
    )


def _row_to_user(row: UserRow, enrollments: list[EnrollmentRow]) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        role=row.role,
        profile_pic=asset_from_json(row.profile_pic or {}),
        enrollments=tuple(_row_to_enrollment(e) for e in enrollments),
    )
