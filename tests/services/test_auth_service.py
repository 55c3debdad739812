from __future__ import annotations

import asyncio

import pytest
from argon2 import PasswordHasher

from lms.core.errors import (
    EmailAlreadyExistsError,
    UnauthorizedError,
    ValidationError,
)
from lms.models.user import User
from lms.repos.user_repo import InMemoryUserRepo
from lms.services.auth_service import (
    authenticate_user,
    change_password,
    ensure_admin,
    hash_password,
    register_user,
    verify_password,
)


def test_hash_and_verify_round_trip() -> None:
    h = hash_password("pw123456")
    assert verify_password("pw123456", h)
    assert not verify_password("wrong", h)
    assert not verify_password("pw123456", "not-a-hash")


def test_register_normalizes_and_defaults_role() -> None:
    repo = InMemoryUserRepo()
    user = asyncio.run(register_user(repo, "  Tee ", " Tee@Example.COM ", "secret"))

    assert user.email == "tee@example.com"
    assert user.name == "Tee"
    assert user.role == "user"
    assert user.enrollments == ()


@pytest.mark.parametrize(
    ("name", "email", "password", "message"),
    [
        ("Tee", "not-an-email", "secret", "invalid email address"),
        ("  ", "tee@example.com", "secret", "name is required"),
        ("Tee", "tee@example.com", "12345", "at least 6 characters"),
    ],
)
def test_register_validation(name: str, email: str, password: str, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        asyncio.run(register_user(InMemoryUserRepo(), name, email, password))


def test_register_duplicate_email() -> None:
    repo = InMemoryUserRepo()
    asyncio.run(register_user(repo, "A", "a@example.com", "secret"))
    with pytest.raises(EmailAlreadyExistsError):
        asyncio.run(register_user(repo, "B", "A@example.com", "secret"))


def test_user_record_never_carries_password_hash() -> None:
    repo = InMemoryUserRepo()
    user = asyncio.run(register_user(repo, "A", "a@example.com", "secret"))
    assert not hasattr(user, "password_hash")
    assert asyncio.run(repo.get_password_hash(user.id)) is not None


def test_authenticate_user() -> None:
    repo = InMemoryUserRepo()
    asyncio.run(register_user(repo, "A", "a@example.com", "secret"))

    assert asyncio.run(authenticate_user(repo, "A@EXAMPLE.com", "secret")) is not None
    assert asyncio.run(authenticate_user(repo, "a@example.com", "wrong")) is None
    assert asyncio.run(authenticate_user(repo, "b@example.com", "secret")) is None


def test_authenticate_user_rehashes_when_needed() -> None:
    old_ph = PasswordHasher(time_cost=1, memory_cost=8 * 1024, parallelism=1)
    old_hash = old_ph.hash("pw123456")
    repo = InMemoryUserRepo()
    user = User.new(name="Tee", email="tee@example.com")
    asyncio.run(repo.add(user, old_hash))

    assert asyncio.run(authenticate_user(repo, "tee@example.com", "pw123456")) is not None
    assert asyncio.run(repo.get_password_hash(user.id)) != old_hash


def test_change_password() -> None:
    repo = InMemoryUserRepo()
    user = asyncio.run(register_user(repo, "A", "a@example.com", "secret"))

    with pytest.raises(UnauthorizedError):
        asyncio.run(change_password(repo, user.id, "wrong", "new-secret"))

    asyncio.run(change_password(repo, user.id, "secret", "new-secret"))
    assert asyncio.run(authenticate_user(repo, "a@example.com", "new-secret")) is not None
    assert asyncio.run(authenticate_user(repo, "a@example.com", "secret")) is None


def test_ensure_admin_creates_once() -> None:
    repo = InMemoryUserRepo()
    admin = asyncio.run(ensure_admin(repo, "Admin@Example.com", "admin-pw"))
    again = asyncio.run(ensure_admin(repo, "admin@example.com", "other-pw"))

    assert admin.is_admin
    assert again.id == admin.id
    assert asyncio.run(authenticate_user(repo, "admin@example.com", "admin-pw")) is not None
