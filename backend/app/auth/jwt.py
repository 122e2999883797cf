"""
JWT token utilities.

Tokens are issued by the identity service; this backend verifies them.
`create_access_token` exists for local tooling and tests.
"""

from datetime import timedelta
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from app.config import settings
from app.utils.timezone import utc_now


def create_access_token(user_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token for a user.

    Args:
        user_id: The user's UUID
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    to_encode = {
        "sub": str(user_id),
        "exp": utc_now() + expires_delta,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[UUID]:
    """
    Decode and validate an access token.

    Returns:
        User UUID if the token is valid, unexpired and of type "access";
        None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    user_id_str = payload.get("sub")
    if user_id_str is None or payload.get("type") != "access":
        return None
    try:
        return UUID(user_id_str)
    except ValueError:
        return None
