import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.config import settings
from meetcute.database.crud.boost import create_profile_boost, get_active_boost_packages, get_running_boost
from meetcute.database.models import BoostPackage, BoostSource, ProfileBoost
from meetcute.services.errors import ConflictError
from meetcute.services.tier_service import ensure_feature_access
from meetcute.services.unit_of_work import unit_of_work
from meetcute.utils.timezone import utcnow


logger = logging.getLogger(__name__)


PROFILE_BOOST_FEATURE = 'profile_boost'


async def list_boost_packages(db: AsyncSession) -> list[BoostPackage]:
    return await get_active_boost_packages(db)


async def get_boost_status(db: AsyncSession, user_id: int) -> ProfileBoost | None:
    return await get_running_boost(db, user_id, utcnow())


async def activate_included_boost(db: AsyncSession, user_id: int) -> ProfileBoost:
    """Start the boost that comes with a subscription tier that has the profile boost feature."""
    async with unit_of_work(db, f'activate profile boost for user #{user_id}'):
        await ensure_feature_access(db, user_id, PROFILE_BOOST_FEATURE)

        now = utcnow()
        if await get_running_boost(db, user_id, now, for_update=True) is not None:
            raise ConflictError('A profile boost is already active', code='boost_already_active')

        boost = await create_profile_boost(
            db,
            user_id,
            now,
            now + timedelta(minutes=settings.PROFILE_BOOST_DURATION_MINUTES),
            source=BoostSource.SUBSCRIPTION,
        )

    logger.info('🚀 Profile boost #%s started for user #%s until %s', boost.id, user_id, boost.expires_at)
    return boost


async def grant_purchased_boost(
    db: AsyncSession,
    user_id: int,
    package: BoostPackage,
    transaction_id: int,
) -> ProfileBoost:
    """Extend the running boost by the package duration, or start a new one. Caller commits."""
    now = utcnow()
    duration = timedelta(minutes=package.duration_minutes)

    running = await get_running_boost(db, user_id, now, for_update=True)
    if running is not None:
        running.expires_at = running.expires_at + duration
        await db.flush()
        logger.info('🚀 Profile boost #%s of user #%s extended until %s', running.id, user_id, running.expires_at)
        return running

    boost = await create_profile_boost(
        db,
        user_id,
        now,
        now + duration,
        source=BoostSource.PURCHASE,
        boost_package_id=package.id,
        transaction_id=transaction_id,
    )
    logger.info('🚀 Purchased profile boost #%s started for user #%s until %s', boost.id, user_id, boost.expires_at)
    return boost
