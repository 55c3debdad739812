from __future__ import annotations

import asyncio

import pytest

from lms.models.course import AssetRef
from lms.models.user import Enrollment, User
from lms.repos.user_repo import InMemoryUserRepo


def _repo_with(*users: User) -> InMemoryUserRepo:
    repo = InMemoryUserRepo()
    for u in users:
        asyncio.run(repo.add(u, "hash"))
    return repo


def test_add_rejects_duplicate_email() -> None:
    repo = _repo_with(User.new(name="A", email="a@example.com"))
    with pytest.raises(ValueError, match="email already exists"):
        asyncio.run(repo.add(User.new(name="B", email="a@example.com"), "hash"))


def test_update_profile_partial() -> None:
    user = User.new(name="A", email="a@example.com")
    repo = _repo_with(user)
    pic = AssetRef(public_id="p1", url="https://cdn.example.com/p1.png")

    renamed = asyncio.run(repo.update_profile(user.id, name="Alice"))
    assert renamed is not None
    assert renamed.name == "Alice"
    assert renamed.profile_pic == user.profile_pic

    with_pic = asyncio.run(repo.update_profile(user.id, profile_pic=pic))
    assert with_pic is not None
    assert with_pic.name == "Alice"
    assert with_pic.profile_pic == pic

    assert asyncio.run(repo.update_profile("ghost", name="x")) is None


def test_add_enrollment_rejects_second_for_same_course() -> None:
    user = User.new(name="A", email="a@example.com")
    repo = _repo_with(user)

    assert asyncio.run(repo.add_enrollment(user.id, Enrollment(course_id="c1")))
    with pytest.raises(ValueError, match="already enrolled"):
        asyncio.run(repo.add_enrollment(user.id, Enrollment(course_id="c1")))
    assert not asyncio.run(repo.add_enrollment("ghost", Enrollment(course_id="c1")))


def test_save_enrollment_touches_only_that_course() -> None:
    user = User.new(name="A", email="a@example.com").with_enrollment(
        Enrollment(course_id="c1")
    ).with_enrollment(Enrollment(course_id="c2", completed_lectures=("x1",), progress=50.0))
    repo = _repo_with(user)

    updated = Enrollment(course_id="c1", completed_lectures=("l1",), progress=100.0)
    assert asyncio.run(repo.save_enrollment(user.id, updated))

    stored = asyncio.run(repo.get_by_id(user.id))
    assert stored is not None
    assert stored.enrollment_for("c1") == updated
    assert stored.enrollment_for("c2") == user.enrollment_for("c2")


def test_save_enrollment_never_recreates_a_removed_one() -> None:
    user = User.new(name="A", email="a@example.com").with_enrollment(
        Enrollment(course_id="c1")
    )
    repo = _repo_with(user)
    asyncio.run(repo.remove_enrollments("c1"))

    assert not asyncio.run(repo.save_enrollment(user.id, Enrollment(course_id="c1")))
    stored = asyncio.run(repo.get_by_id(user.id))
    assert stored is not None
    assert stored.enrollments == ()
    assert not asyncio.run(repo.save_enrollment("ghost", Enrollment(course_id="c1")))


def test_prune_completed_lectures_recomputes_only_that_course() -> None:
    user = User.new(name="A", email="a@example.com").with_enrollment(
        Enrollment(course_id="c1", completed_lectures=("l1", "l2"), progress=50.0)
    ).with_enrollment(
        Enrollment(course_id="c2", completed_lectures=("x1",), progress=25.0)
    )
    bystander = User.new(name="B", email="b@example.com").with_enrollment(
        Enrollment(course_id="c2", completed_lectures=("x1",), progress=25.0)
    )
    repo = _repo_with(user, bystander)

    touched = asyncio.run(
        repo.prune_completed_lectures(["l2"], course_id="c1", total_lectures=3)
    )

    assert touched == 1
    stored = asyncio.run(repo.get_by_id(user.id))
    assert stored is not None
    c1 = stored.enrollment_for("c1")
    c2 = stored.enrollment_for("c2")
    assert c1 is not None and c2 is not None
    assert c1.completed_lectures == ("l1",)
    assert c1.progress == pytest.approx(100 / 3)
    assert c2.progress == 25.0


def test_remove_enrollments() -> None:
    user = User.new(name="A", email="a@example.com").with_enrollment(
        Enrollment(course_id="c1")
    )
    other = User.new(name="B", email="b@example.com")
    repo = _repo_with(user, other)

    assert asyncio.run(repo.remove_enrollments("c1")) == 1
    stored = asyncio.run(repo.get_by_id(user.id))
    assert stored is not None
    assert stored.enrollments == ()
