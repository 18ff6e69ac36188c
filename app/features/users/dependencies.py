"""
FastAPI dependencies for the current user.
"""
from typing import Annotated
from datetime import datetime, timezone
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.schemas import UserPermissions
from app.features.users.models import User
from app.features.users.auth import verify_jwt_token


security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get the current authenticated user from the bearer token.
    
    This dependency:
    1. Verifies the JWT
    2. Loads the user (and role) from the local database
    3. Updates last_login_at timestamp
    """
    payload = verify_jwt_token(credentials.credentials)
    user_id = payload.get("sub")
    
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )
    
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )
    
    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)
    
    return user


def build_user_permissions(user: User) -> UserPermissions:
    """Snapshot a user's role for the permission engine."""
    return UserPermissions.model_validate(user)


async def get_current_user_permissions(
    user: Annotated[User, Depends(get_current_user)]
) -> UserPermissions:
    """
    Role snapshot of the current user.
    
    Built fresh on every request so role edits apply immediately.
    """
    return build_user_permissions(user)


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
