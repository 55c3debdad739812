"""JWT access and refresh tokens (ES256).

Issuance (the users router) and validation (lms/api/dependencies.py)
share the key pair and claim schema defined here.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

# Ephemeral EC key pair, generated on import.  Tokens do not survive a
# restart; loading a persistent key is left to the deployment.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "lms-service"
AUDIENCE = "lms-service"
ACCESS_TOKEN_TTL_MIN = 15

# Different audience: a refresh JWT is never accepted as an access token.
REFRESH_AUDIENCE = "lms-service-refresh"
REFRESH_TOKEN_TTL_DAYS = 7

_REQUIRED_CLAIMS = ["sub", "exp", "iat", "jti"]


def create_access_token(*, sub: str, roles: list[str] | None = None) -> str:
    """Build and sign an access token carrying ``sub`` and ``roles``."""
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["user"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Algorithm is pinned to ES256.  Raises jwt.ExpiredSignatureError or
    jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": _REQUIRED_CLAIMS},
    )


def create_refresh_token(*, sub: str) -> str:
    """Refresh tokens carry identity only.

    The refresh endpoint reads the user's current role from the repo, so
    a role change applies at the next refresh.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": REFRESH_AUDIENCE,
        "exp": now + timedelta(days=REFRESH_TOKEN_TTL_DAYS),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_refresh_token(token: str) -> dict:
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=REFRESH_AUDIENCE,
        options={"require": _REQUIRED_CLAIMS},
    )
