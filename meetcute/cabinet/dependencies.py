"""FastAPI dependencies for the cabinet API."""

import logging
from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.crud.user import get_user_by_id
from meetcute.database.database import AsyncSessionLocal
from meetcute.database.models import User
from meetcute.services.errors import BillingError
from meetcute.services.tier_service import ensure_active_subscription, ensure_feature_access

from .auth import get_user_id_from_token
from .errors import billing_http_error


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_cabinet_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


async def get_current_cabinet_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_cabinet_db),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Not authenticated',
            headers={'WWW-Authenticate': 'Bearer'},
        )

    user_id = get_user_id_from_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Invalid or expired token',
            headers={'WWW-Authenticate': 'Bearer'},
        )

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='User not found')

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Account is deactivated')
    if user.is_suspended:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Account is suspended')

    return user


async def get_current_admin_user(user: User = Depends(get_current_cabinet_user)) -> User:
    if not user.is_admin:
        logger.warning('User #%s tried to reach an admin endpoint', user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Admin access required')
    return user


async def require_active_subscription(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
) -> User:
    try:
        await ensure_active_subscription(db, user.id)
    except BillingError as error:
        raise billing_http_error(error) from error
    return user


def require_feature(feature_key: str):
    """Dependency factory gating a route on a tier feature."""

    async def dependency(
        user: User = Depends(get_current_cabinet_user),
        db: AsyncSession = Depends(get_cabinet_db),
    ) -> User:
        try:
            await ensure_feature_access(db, user.id, feature_key)
        except BillingError as error:
            raise billing_http_error(error) from error
        return user

    return dependency
