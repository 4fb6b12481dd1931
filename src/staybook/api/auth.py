"""Bearer-token authentication.

Provides:
- verify_token(): Validates an HS256 JWT and returns its subject claim
- get_current_user(): FastAPI dependency resolving the caller to a Principal
"""

from __future__ import annotations

import jwt
from fastapi import HTTPException, Request

from staybook.domain.access import ROLES, Principal
from staybook.infra.settings import get_settings


def verify_token(token: str) -> str:
    """Verify JWT and return subject claim.

    Issuer and audience are checked only when configured.

    Raises:
        HTTPException: 401 if the token is invalid or auth is not configured.
    """
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(status_code=401, detail="Auth not configured")

    required = ["exp", "sub"]
    if settings.jwt_issuer:
        required.append("iss")
    if settings.jwt_audience:
        required.append("aud")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            options={"require": required, "verify_aud": bool(settings.jwt_audience)},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Invalid token")
    return sub


def _extract_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header.

    Raises:
        HTTPException: 401 if header missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return parts[1]


def _get_user_from_db(external_subject: str) -> Principal | None:
    from staybook.infra.db import txn
    from staybook.infra.repositories import users_repository

    with txn() as cur:
        row = users_repository.get_user_by_subject(cur, external_subject)
    if row is None or row["role"] not in ROLES:
        return None
    return Principal(
        id=row["id"],
        role=row["role"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
    )


def get_current_user(request: Request) -> Principal:
    """FastAPI dependency: get authenticated principal.

    Raises:
        HTTPException: 401 if token invalid/missing, 403 if user not found.
    """
    token = _extract_bearer_token(request)
    sub = verify_token(token)

    principal = _get_user_from_db(sub)
    if principal is None:
        raise HTTPException(status_code=403, detail="User not found")

    return principal
