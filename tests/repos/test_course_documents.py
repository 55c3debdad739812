"""Course document model and its JSONB mapping.

The Postgres repo stores the module/lecture tree as JSON; these tests
exercise the conversion helpers without a database.
"""

from __future__ import annotations

import asyncio

import pytest

from lms.models.course import AssetRef, Course, Lecture, Module
from lms.repos.course_repo import InMemoryCourseRepo
from lms.repos.pg_course_repo import (
    asset_from_json,
    modules_from_json,
    modules_to_json,
)

THUMB = AssetRef(public_id="t", url="https://cdn.example.com/t.png")


def _course() -> Course:
    return Course.new(
        title="C",
        description="d",
        price=1.0,
        thumbnail=THUMB,
        modules=(
            Module.new(
                title="M1",
                module_number=1,
                lectures=(
                    Lecture.new(
                        title="L1",
                        video_url="v1",
                        pdf_notes=(AssetRef("p", "https://cdn.example.com/p.pdf"),),
                    ),
                    Lecture.new(title="L2", video_url="v2"),
                ),
            ),
            Module.new(
                title="M2",
                module_number=4,
                lectures=(Lecture.new(title="L3", video_url="v3"),),
            ),
        ),
    )


def test_lecture_sequence_follows_storage_order() -> None:
    course = _course()
    titles = {
        lec.id: lec.title for m in course.modules for lec in m.lectures
    }
    assert [titles[i] for i in course.lecture_sequence()] == ["L1", "L2", "L3"]
    assert course.total_lectures() == 3
    assert course.max_module_number() == 4


def test_module_edits_return_new_course() -> None:
    course = _course()
    trimmed = course.without_module(course.modules[0].id)
    assert len(course.modules) == 2
    assert [m.title for m in trimmed.modules] == ["M2"]
    assert trimmed.updated_at >= course.updated_at


def test_modules_json_mapping_keeps_ids_and_notes() -> None:
    course = _course()
    assert modules_from_json(modules_to_json(course.modules)) == course.modules


def test_asset_from_json_tolerates_missing_fields() -> None:
    assert asset_from_json({}) == AssetRef(public_id="", url="")
    assert not asset_from_json({}).is_valid()


def test_in_memory_repo_save_and_delete() -> None:
    repo = InMemoryCourseRepo()
    course = _course()
    asyncio.run(repo.add(course))

    with pytest.raises(ValueError):
        asyncio.run(repo.add(course))

    assert asyncio.run(repo.save(course.without_module(course.modules[1].id)))
    assert asyncio.run(repo.delete(course.id)) is not None
    assert asyncio.run(repo.delete(course.id)) is None
    assert not asyncio.run(repo.save(course))
