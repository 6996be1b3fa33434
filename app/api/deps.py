# =============================================================================
# Auth Dependency — Resolve the Calling User
# =============================================================================
#
# get_current_user() turns an optional bearer token into an
# AuthenticatedUser (or None for anonymous callers):
#
#   no token                  → None      (401 if auth_required)
#   unknown key               → 401
#   deactivated / expired key → 403
#   valid key                 → AuthenticatedUser(user_id, api_key_id)
#
# Anonymous access is allowed by default: the workflow still runs, it
# just gets no knowledge context.
#
# HTTPBearer(auto_error=False) so that a missing header reaches this
# function instead of failing inside FastAPI.
# =============================================================================

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.engine import get_async_session
from app.db.models import ApiKey
from app.services.auth import AuthenticatedUser, hash_api_key

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs (shows "Authorize" button in Swagger UI)
_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(
        _bearer_scheme,
    ),
    session: AsyncSession = Depends(get_async_session),
) -> AuthenticatedUser | None:
    """
    FastAPI dependency that resolves the caller's identity.

    Raises:
        HTTPException 401: Missing key (when required) or unknown key
        HTTPException 403: Key is inactive or expired
    """
    if credentials is None:
        if settings.auth_required:
            raise HTTPException(
                status_code=401,
                detail="Missing API key. Provide "
                "'Authorization: Bearer <key>' header.",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return None

    key_hash = hash_api_key(credentials.credentials)

    stmt = select(ApiKey).where(ApiKey.key_hash == key_hash)
    result = await session.execute(stmt)
    api_key = result.scalar_one_or_none()

    if api_key is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not api_key.is_active:
        raise HTTPException(
            status_code=403,
            detail="API key has been deactivated.",
        )

    if api_key.expires_at and api_key.expires_at < datetime.now(UTC):
        raise HTTPException(
            status_code=403,
            detail="API key has expired.",
        )

    api_key.last_used_at = datetime.now(UTC)

    return AuthenticatedUser(user_id=api_key.user_id, api_key_id=api_key.id)
