"""SQLAlchemy table definitions.

Courses are stored as documents: scalar columns for the fields that are
queried or indexed, JSONB for the thumbnail and the nested
module/lecture tree.  Users keep their enrollments in a child table so
the cascade prune can find affected rows by course or lecture ID with an
index instead of scanning every user.

Repos convert between these rows and the frozen dataclasses in
lms/models/.
"""

from __future__ import annotations

from sqlalchemy import (
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from lms.db.engine import Base


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    thumbnail: Mapped[dict] = mapped_column(JSONB, nullable=False)
    modules: Mapped[list[dict]] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False)


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(
        String(16), nullable=False, default="user"
    )  # user|admin
    profile_pic: Mapped[dict] = mapped_column(JSONB, nullable=False)


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    # Composite PK enforces one enrollment per (user, course)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    course_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    completed_lectures: Mapped[list[str]] = mapped_column(
        ARRAY(String(36)), nullable=False, default=list
    )
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    enrolled_at: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_enrollments_course_id", "course_id"),
        Index(
            "ix_enrollments_completed_lectures",
            "completed_lectures",
            postgresql_using="gin",
        ),
    )
