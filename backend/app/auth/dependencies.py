"""
Authentication dependencies for FastAPI.

Resolves the bearer token to an active User. Role checks (member vs
admin/owner) are club-specific and live in the services.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import decode_access_token
from app.database import get_db_session
from app.exceptions import NotAuthenticatedError
from app.models import User

logger = logging.getLogger(__name__)

# auto_error=False: a missing header becomes our 401 error format, not FastAPI's 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Get the current authenticated user.

    Raises NotAuthenticatedError (401) if the header is missing, the token
    is invalid or expired, or the user is unknown or deactivated.
    """
    if credentials is None:
        raise NotAuthenticatedError("Authorization header with Bearer token is required")

    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise NotAuthenticatedError("Invalid or expired access token")

    result = await db.execute(
        select(User).where(User.id == user_id, User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()
    if user is None:
        logger.info("Token for unknown or inactive user %s rejected", user_id)
        raise NotAuthenticatedError()
    return user
