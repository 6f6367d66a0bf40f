import secrets
from typing import Any, Optional, Dict

from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.utils import is_valid_uuid
from app.domain.errors import AuthError, ErrorCode
from app.domain.models.profile import Profile
from app.domain.repositories.profile_repository import ProfileRepository
from app.infrastructure.database.session import get_db_session

# Missing credentials are reported as AuthError (401) rather than HTTPBearer's 403
security = HTTPBearer(auto_error=False)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_aud": False},
        )
    except ExpiredSignatureError:
        raise AuthError("Token has expired", code=ErrorCode.TOKEN_EXPIRED)
    except JWTError:
        raise AuthError("Could not validate credentials", code=ErrorCode.TOKEN_INVALID)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db_session),
) -> Profile:
    """
    Resolve the caller's profile from the bearer token.

    A profile is created on first sight when the token carries an email.
    """
    if not credentials:
        raise AuthError("Not authenticated")

    payload = decode_token(credentials.credentials)
    if payload.get("type", "access") != "access":
        raise AuthError("Invalid token type", code=ErrorCode.TOKEN_INVALID)

    user_id: Optional[str] = payload.get("sub")
    if user_id is None or not is_valid_uuid(user_id):
        raise AuthError("Could not validate credentials", code=ErrorCode.TOKEN_INVALID)

    profiles = ProfileRepository(db)
    profile = await profiles.get_by_id(user_id)
    if profile is None:
        email = payload.get("email")
        if not email:
            raise AuthError("Unknown user")
        user_metadata = payload.get("user_metadata") or {}
        profile = await profiles.create(
            profile_id=user_id,
            email=email,
            full_name=user_metadata.get("full_name"),
            avatar_url=user_metadata.get("avatar_url"),
        )
        await db.commit()

    return profile


async def verify_callback_token(authorization: Optional[str] = Header(None)) -> None:
    """Check the workflow engine's bearer token on callbacks when one is configured."""
    expected = settings.WEBHOOK_CALLBACK_TOKEN
    if not expected:
        return
    if not authorization or not secrets.compare_digest(authorization, f"Bearer {expected}"):
        raise AuthError("Invalid callback credentials")
