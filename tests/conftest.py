from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from lms.main import app
from lms.models.course import AssetRef, Course, Lecture, Module
from lms.models.user import User
from lms.repos.course_repo import course_repo
from lms.repos.user_repo import user_repo
from lms.services import auth_service, token_service
from lms.services.cache import cache_service
from lms.services.token_blacklist import token_blacklist

# Ensure repo root is on sys.path so `import lms` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

THUMB = AssetRef(public_id="thumb-1", url="https://cdn.example.com/thumb-1.png")


@pytest.fixture(autouse=True)
def reset_course_repo() -> None:
    if hasattr(course_repo, "_by_id"):
        course_repo._by_id.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_user_repo() -> None:
    if hasattr(user_repo, "_by_id"):
        user_repo._by_id.clear()  # type: ignore[union-attr]
        user_repo._id_by_email.clear()  # type: ignore[union-attr]
        user_repo._password_hashes.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_token_blacklist() -> None:
    if hasattr(token_blacklist, "_revoked"):
        token_blacklist._revoked.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token() -> str:
    """Token with admin role.  Catalog writes need no stored admin user."""
    return mint_token(username="test-admin", roles=["admin"])


def create_test_user(
    email: str = "learner@example.com",
    password: str = "secret-pw",
    name: str = "Learner",
) -> User:
    """Register a user in the in-memory repo."""
    return asyncio.run(auth_service.register_user(user_repo, name, email, password))


@pytest.fixture
def learner() -> User:
    return create_test_user()


@pytest.fixture
def learner_token(learner: User) -> str:
    return mint_token(username=learner.id, roles=["user"])


def create_test_course(
    lectures_per_module: tuple[int, ...] = (2, 1),
    title: str = "Python Basics",
) -> Course:
    """Persist a course directly through the repo.

    The default layout is the three-lecture, two-module course used by
    the end-to-end scenarios: module 1 holds L1 and L2, module 2 holds L3.
    """
    counter = 0
    modules = []
    for m_index, count in enumerate(lectures_per_module, start=1):
        lectures = []
        for _ in range(count):
            counter += 1
            lectures.append(
                Lecture.new(
                    title=f"L{counter}",
                    video_url=f"https://videos.example.com/l{counter}.mp4",
                )
            )
        modules.append(
            Module.new(
                title=f"Module {m_index}",
                module_number=m_index,
                lectures=tuple(lectures),
            )
        )
    course = Course.new(
        title=title,
        description="An introduction",
        price=49.0,
        thumbnail=THUMB,
        modules=tuple(modules),
    )
    asyncio.run(course_repo.add(course))
    return course
