import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import User, UserRole


logger = logging.getLogger(__name__)


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_user_no_commit(
    db: AsyncSession,
    email: str | None = None,
    display_name: str | None = None,
    role: UserRole = UserRole.USER,
) -> User:
    """Create a user inside the caller's transaction."""
    user = User(
        email=email.strip().lower() if email else None,
        display_name=display_name,
        role=role.value,
        is_active=True,
        is_suspended=False,
    )
    db.add(user)
    await db.flush()
    logger.info('👤 Created user #%s (%s)', user.id, user.email or 'no email')
    return user


async def set_user_role(db: AsyncSession, user: User, role: str) -> bool:
    """Store a new role; returns True when it actually changed."""
    if user.role == role:
        return False
    old_role = user.role
    user.role = role
    await db.flush()
    logger.info('🎖️ Role of user #%s changed: %s → %s', user.id, old_role, role)
    return True
