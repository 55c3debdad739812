"""create courses, users and enrollments

Revision ID: 3b1d0c9e7a21
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1d0c9e7a21"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("thumbnail", postgresql.JSONB(), nullable=False),
        sa.Column(
            "modules", postgresql.JSONB(), nullable=False, server_default="[]"
        ),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.Integer(), nullable=False),
    )
    op.create_index("ix_courses_title", "courses", ["title"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="user"),
        sa.Column("profile_pic", postgresql.JSONB(), nullable=False),
    )

    op.create_table(
        "enrollments",
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("course_id", sa.String(length=36), primary_key=True),
        sa.Column(
            "completed_lectures",
            postgresql.ARRAY(sa.String(length=36)),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("progress", sa.Float(), nullable=False, server_default="0"),
        sa.Column("enrolled_at", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"])
    op.create_index(
        "ix_enrollments_completed_lectures",
        "enrollments",
        ["completed_lectures"],
        postgresql_using="gin",
    )


def downgrade() -> None:
    op.drop_index("ix_enrollments_completed_lectures", table_name="enrollments")
    op.drop_index("ix_enrollments_course_id", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_table("users")
    op.drop_index("ix_courses_title", table_name="courses")
    op.drop_table("courses")
