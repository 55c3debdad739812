from __future__ import annotations

import logging
import re

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from lms.core.errors import (
    EmailAlreadyExistsError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
)
from lms.models.user import User
from lms.repos.user_repo import UserRepo

logger = logging.getLogger(__name__)

# Argon2 hash strings encode parameters + salt
_ph = PasswordHasher()

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    return _ph.hash(plain_password)


# Never raises: every argon2 failure means "does not match"
def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"password must be at least {MIN_PASSWORD_LENGTH} characters"
        )


async def register_user(repo: UserRepo, name: str, email: str, password: str) -> User:
    """Create a learner account.  Self-registration never grants admin."""
    email = normalize_email(email)
    name = name.strip()
    if not EMAIL_RE.match(email):
        raise ValidationError("invalid email address")
    if not name:
        raise ValidationError("name is required")
    _validate_password(password)

    if await repo.get_by_email(email) is not None:
        logger.warning("Rejected duplicate email=%s", email)
        raise EmailAlreadyExistsError()

    user = User.new(name=name, email=email)
    try:
        await repo.add(user, hash_password(password))
    except ValueError:
        # Lost a race with another registration for the same email
        raise EmailAlreadyExistsError() from None

    logger.info("User registered email=%s", email, extra={"user_id": user.id})
    return user


async def authenticate_user(repo: UserRepo, email: str, password: str) -> User | None:
    user = await repo.get_by_email(normalize_email(email))
    if user is None:
        return None
    password_hash = await repo.get_password_hash(user.id)
    if password_hash is None or not verify_password(password, password_hash):
        return None

    # Upgrade the stored hash if the hasher's parameters changed over time
    if _ph.check_needs_rehash(password_hash):
        await repo.update_password_hash(user.id, _ph.hash(password))
        logger.info("Rehashed password", extra={"user_id": user.id})

    return user


async def change_password(
    repo: UserRepo, user_id: str, old_password: str, new_password: str
) -> None:
    current = await repo.get_password_hash(user_id)
    if current is None:
        raise UserNotFoundError()
    if not verify_password(old_password, current):
        logger.warning(
            "Password change rejected: wrong old password",
            extra={"user_id": user_id},
        )
        raise UnauthorizedError("old password is incorrect")
    _validate_password(new_password)

    if not await repo.update_password_hash(user_id, hash_password(new_password)):
        raise UserNotFoundError()
    logger.info("Password changed", extra={"user_id": user_id})


async def ensure_admin(repo: UserRepo, email: str, password: str) -> User:
    """Create the bootstrap admin account unless the email is taken.

    An existing account is returned as-is; its role and password are not
    touched.
    """
    email = normalize_email(email)
    existing = await repo.get_by_email(email)
    if existing is not None:
        if not existing.is_admin:
            logger.warning(
                "Bootstrap admin email belongs to a non-admin account",
                extra={"user_id": existing.id},
            )
        return existing

    admin = User.new(name="Administrator", email=email, role="admin")
    await repo.add(admin, hash_password(password))
    logger.info("Bootstrap admin created email=%s", email, extra={"user_id": admin.id})
    return admin
