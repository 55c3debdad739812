"""Account endpoints: register, login, token refresh, logout, profile.

Register, login and refresh all return { accessToken, refreshToken, user }
so a client can store the pair and continue without another round trip.

Refresh tokens rotate: each one is single-use.  Presenting a refresh
token blacklists its ``jti`` and issues a new pair, so a stolen token
that was already used is rejected.
"""

from __future__ import annotations

import logging
from typing import Annotated

import jwt as pyjwt
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from lms.api.dependencies import oauth2_scheme, require_user
from lms.api.schemas import AssetRefSchema, EnrollmentOut
from lms.core.errors import UnauthorizedError, UserNotFoundError, ValidationError
from lms.models.principal import Principal
from lms.models.user import User
from lms.repos.user_repo import user_repo
from lms.services import auth_service, token_service
from lms.services.token_blacklist import token_blacklist

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users", tags=["users"])


# --- Request / Response schemas -------------------------------------------


class RegisterIn(BaseModel):
    name: str
    email: str
    password: str


class LoginIn(BaseModel):
    email: str
    password: str


class RefreshIn(BaseModel):
    refreshToken: str


class LogoutBody(BaseModel):
    """Optional body: clients may include their refresh token for revocation."""

    refreshToken: str | None = None


class ChangePasswordIn(BaseModel):
    old_password: str
    new_password: str


class UpdateProfileIn(BaseModel):
    name: str | None = None
    profile_pic: AssetRefSchema | None = None


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    role: str


class AuthResponse(BaseModel):
    accessToken: str
    refreshToken: str
    user: UserOut


class ProfileOut(BaseModel):
    id: str
    email: str
    name: str
    role: str
    profile_pic: AssetRefSchema
    enrollments: list[EnrollmentOut]


def _user_out(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, name=user.name, role=user.role)


def _profile_out(user: User) -> ProfileOut:
    return ProfileOut(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        profile_pic=AssetRefSchema.from_model(user.profile_pic),
        enrollments=[EnrollmentOut.from_model(e) for e in user.enrollments],
    )


def _issue_tokens(user: User) -> AuthResponse:
    return AuthResponse(
        accessToken=token_service.create_access_token(sub=user.id, roles=[user.role]),
        refreshToken=token_service.create_refresh_token(sub=user.id),
        user=_user_out(user),
    )


# --- POST /v1/users/register ----------------------------------------------


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(payload: RegisterIn) -> AuthResponse:
    user = await auth_service.register_user(
        user_repo, payload.name, payload.email, payload.password
    )
    return _issue_tokens(user)


# --- POST /v1/users/login -------------------------------------------------


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginIn) -> AuthResponse:
    user = await auth_service.authenticate_user(
        user_repo, payload.email, payload.password
    )
    if user is None:
        logger.warning("Login failed  email=%s", payload.email.strip().lower())
        raise UnauthorizedError("invalid email or password")

    logger.info("Login succeeded", extra={"user_id": user.id})
    return _issue_tokens(user)


# --- POST /v1/users/refresh-token -----------------------------------------


@router.post("/refresh-token", response_model=AuthResponse)
async def refresh(payload: RefreshIn) -> AuthResponse:
    try:
        claims = token_service.decode_refresh_token(payload.refreshToken)
    except pyjwt.ExpiredSignatureError:
        logger.warning("Expired refresh token presented")
        raise UnauthorizedError("refresh token expired") from None
    except pyjwt.InvalidTokenError as e:
        logger.warning("Invalid refresh token: %s", e)
        raise UnauthorizedError("invalid refresh token") from None

    jti = claims["jti"]
    if await token_blacklist.is_revoked(jti):
        # A used refresh token coming back may mean it was stolen
        logger.warning(
            "Revoked refresh token reuse detected  jti=%s sub=%s", jti, claims["sub"]
        )
        raise UnauthorizedError("refresh token has been revoked")

    # Current role comes from the repo, not from the old token
    user = await user_repo.get_by_id(claims["sub"])
    if user is None:
        logger.warning("Refresh for unknown user  sub=%s", claims["sub"])
        raise UnauthorizedError("user not found")

    await token_blacklist.revoke(jti, float(claims["exp"]))
    logger.info("Refresh token rotated  old_jti=%s", jti, extra={"user_id": user.id})
    return _issue_tokens(user)


# --- POST /v1/users/logout ------------------------------------------------


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
    body: LogoutBody | None = None,
) -> Response:
    """Revoke the presented access token and, if given, the refresh token.

    Idempotent: an already invalid token is not an error, since "make
    this token unusable" already holds for it.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except pyjwt.InvalidTokenError:
        claims = None

    if claims is not None:
        await token_blacklist.revoke(claims["jti"], float(claims["exp"]))
        logger.info("Token revoked jti=%s", claims["jti"])

    if body is not None and body.refreshToken:
        try:
            refresh_claims = token_service.decode_refresh_token(body.refreshToken)
        except pyjwt.InvalidTokenError:
            refresh_claims = None
        if refresh_claims is not None:
            await token_blacklist.revoke(
                refresh_claims["jti"], float(refresh_claims["exp"])
            )
            logger.info("Refresh token revoked on logout  jti=%s", refresh_claims["jti"])

    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- POST /v1/users/change-password ---------------------------------------


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    body: ChangePasswordIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> Response:
    await auth_service.change_password(
        user_repo, principal.user_id, body.old_password, body.new_password
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- /v1/users/profile ----------------------------------------------------


@router.get("/profile", response_model=ProfileOut)
async def get_profile(
    principal: Annotated[Principal, Depends(require_user)],
) -> ProfileOut:
    user = await user_repo.get_by_id(principal.user_id)
    if user is None:
        raise UserNotFoundError()
    return _profile_out(user)


@router.patch("/profile", response_model=ProfileOut)
async def update_profile(
    body: UpdateProfileIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> ProfileOut:
    name = body.name.strip() if body.name is not None else None
    if name is not None and not name:
        raise ValidationError("name must not be empty")
    profile_pic = body.profile_pic.to_model() if body.profile_pic is not None else None
    if profile_pic is not None and not profile_pic.is_valid():
        raise ValidationError("profile_pic requires public_id and url")

    updated = await user_repo.update_profile(
        principal.user_id, name=name, profile_pic=profile_pic
    )
    if updated is None:
        raise UserNotFoundError()
    logger.info("Profile updated", extra={"user_id": updated.id})
    return _profile_out(updated)
