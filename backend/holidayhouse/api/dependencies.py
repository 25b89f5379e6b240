# holidayhouse/api/dependencies.py
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from holidayhouse.core.rbac import Permission, has_permission
from holidayhouse.core.security import verify_access_token
from holidayhouse.db.session import get_db
from holidayhouse.db.models import User

logger = logging.getLogger("uvicorn.error")
security = HTTPBearer(auto_error=False)


async def _user_from_credentials(
    db: AsyncSession,
    credentials: HTTPAuthorizationCredentials,
) -> User:
    token = credentials.credentials
    try:
        payload = verify_access_token(token)
    except JWTError:
        logger.warning("rejected bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )

    try:
        uid = int(payload["user_id"])
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token user id"
        )

    res = await db.execute(select(User).where(User.id == uid))
    user = res.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found"
        )
    return user


async def get_current_user_optional(
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[User]:
    """
    Public endpoints: no Authorization header means an anonymous caller,
    but a bad token is still a 401.
    """
    if credentials is None:
        return None
    return await _user_from_credentials(db, credentials)


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    return await _user_from_credentials(db, credentials)


def require_permission(permission: Permission):
    """
    Dependency factory:
      current_user = Depends(require_permission(Permission.FINANCE_EDIT))
    """

    async def dep(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user.role, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
            )
        return user

    return dep
