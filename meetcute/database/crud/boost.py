from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import BoostPackage, BoostSource, ProfileBoost


async def get_active_boost_packages(db: AsyncSession) -> list[BoostPackage]:
    result = await db.execute(
        select(BoostPackage).where(BoostPackage.is_active.is_(True)).order_by(BoostPackage.price_cents.asc())
    )
    return list(result.scalars().all())


async def get_boost_package_by_id(db: AsyncSession, package_id: int) -> BoostPackage | None:
    result = await db.execute(select(BoostPackage).where(BoostPackage.id == package_id))
    return result.scalar_one_or_none()


async def create_boost_package(
    db: AsyncSession,
    name: str,
    duration_minutes: int,
    price_cents: int,
    currency: str,
) -> BoostPackage:
    package = BoostPackage(name=name, duration_minutes=duration_minutes, price_cents=price_cents, currency=currency)
    db.add(package)
    await db.flush()
    return package


async def get_running_boost(
    db: AsyncSession,
    user_id: int,
    now: datetime,
    *,
    for_update: bool = False,
) -> ProfileBoost | None:
    query = (
        select(ProfileBoost)
        .where(
            ProfileBoost.user_id == user_id,
            ProfileBoost.started_at <= now,
            ProfileBoost.expires_at > now,
        )
        .order_by(ProfileBoost.expires_at.desc())
        .limit(1)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def create_profile_boost(
    db: AsyncSession,
    user_id: int,
    started_at: datetime,
    expires_at: datetime,
    *,
    source: BoostSource,
    boost_package_id: int | None = None,
    transaction_id: int | None = None,
) -> ProfileBoost:
    boost = ProfileBoost(
        user_id=user_id,
        started_at=started_at,
        expires_at=expires_at,
        source=source.value,
        boost_package_id=boost_package_id,
        transaction_id=transaction_id,
    )
    db.add(boost)
    await db.flush()
    return boost
