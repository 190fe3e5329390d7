import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from meetcute.database.models import (
    SubscriptionFeature,
    SubscriptionPackage,
    SubscriptionStatus,
    SubscriptionTransaction,
    SubscriptionTransactionStatus,
    UserSubscription,
)


logger = logging.getLogger(__name__)


PACKAGE_UPDATABLE_FIELDS = (
    'name',
    'description',
    'price_cents',
    'currency',
    'billing_interval',
    'tier_level',
    'duration_months',
    'is_active',
)


# ---------- packages ----------


async def get_active_packages(db: AsyncSession) -> list[SubscriptionPackage]:
    result = await db.execute(
        select(SubscriptionPackage)
        .where(SubscriptionPackage.is_active.is_(True))
        .order_by(SubscriptionPackage.price_cents.asc(), SubscriptionPackage.id.asc())
    )
    return list(result.scalars().all())


async def get_package_by_id(db: AsyncSession, package_id: int) -> SubscriptionPackage | None:
    result = await db.execute(select(SubscriptionPackage).where(SubscriptionPackage.id == package_id))
    return result.scalar_one_or_none()


async def create_package(db: AsyncSession, data: dict) -> SubscriptionPackage:
    package = SubscriptionPackage(**{key: data[key] for key in PACKAGE_UPDATABLE_FIELDS if key in data})
    db.add(package)
    await db.flush()
    logger.info('📦 Created subscription package #%s %s (%s)', package.id, package.name, package.tier_level)
    return package


async def update_package(db: AsyncSession, package: SubscriptionPackage, data: dict) -> SubscriptionPackage:
    """Partial update: keys absent from ``data`` keep their stored values."""
    for key in PACKAGE_UPDATABLE_FIELDS:
        if key in data:
            setattr(package, key, data[key])
    await db.flush()
    return package


# ---------- features ----------


async def get_features_for_tiers(db: AsyncSession, tier_levels: list[str]) -> dict[str, list[SubscriptionFeature]]:
    features: dict[str, list[SubscriptionFeature]] = {tier: [] for tier in tier_levels}
    if not tier_levels:
        return features

    result = await db.execute(
        select(SubscriptionFeature)
        .where(SubscriptionFeature.tier_level.in_(tier_levels))
        .order_by(SubscriptionFeature.name.asc())
    )
    for feature in result.scalars().all():
        features.setdefault(feature.tier_level, []).append(feature)
    return features


async def get_features_for_tier(db: AsyncSession, tier_level: str) -> list[SubscriptionFeature]:
    features = await get_features_for_tiers(db, [tier_level])
    return features[tier_level]


async def get_feature_by_id(db: AsyncSession, feature_id: int) -> SubscriptionFeature | None:
    result = await db.execute(select(SubscriptionFeature).where(SubscriptionFeature.id == feature_id))
    return result.scalar_one_or_none()


async def create_feature(
    db: AsyncSession,
    tier_level: str,
    feature_key: str,
    name: str,
    description: str | None = None,
) -> SubscriptionFeature:
    feature = SubscriptionFeature(tier_level=tier_level, feature_key=feature_key, name=name, description=description)
    db.add(feature)
    await db.flush()
    return feature


async def delete_feature(db: AsyncSession, feature: SubscriptionFeature) -> None:
    await db.delete(feature)
    await db.flush()


# ---------- user subscriptions ----------


async def create_user_subscription(
    db: AsyncSession,
    user_id: int,
    package_id: int,
    *,
    status: SubscriptionStatus = SubscriptionStatus.PENDING_VERIFICATION,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    payment_method_id: str | None = None,
) -> UserSubscription:
    subscription = UserSubscription(
        user_id=user_id,
        package_id=package_id,
        status=status.value,
        start_date=start_date,
        end_date=end_date,
        auto_renew=True,
        payment_method_id=payment_method_id,
    )
    db.add(subscription)
    await db.flush()
    logger.info(
        '📝 Subscription #%s (%s) created for user #%s, package #%s',
        subscription.id,
        status.value,
        user_id,
        package_id,
    )
    return subscription


async def get_user_subscription(
    db: AsyncSession,
    subscription_id: int,
    user_id: int,
    *,
    for_update: bool = False,
) -> UserSubscription | None:
    query = select(UserSubscription).where(
        UserSubscription.id == subscription_id,
        UserSubscription.user_id == user_id,
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_latest_active_subscription(db: AsyncSession, user_id: int) -> UserSubscription | None:
    result = await db.execute(
        select(UserSubscription)
        .options(selectinload(UserSubscription.package))
        .where(
            UserSubscription.user_id == user_id,
            UserSubscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .order_by(UserSubscription.created_at.desc(), UserSubscription.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_highest_active_subscription(db: AsyncSession, user_id: int) -> UserSubscription | None:
    """Active subscription whose package is the most expensive one."""
    result = await db.execute(
        select(UserSubscription)
        .join(SubscriptionPackage, SubscriptionPackage.id == UserSubscription.package_id)
        .options(selectinload(UserSubscription.package))
        .where(
            UserSubscription.user_id == user_id,
            UserSubscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .order_by(SubscriptionPackage.price_cents.desc(), UserSubscription.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_active_subscriptions_for_update(db: AsyncSession, user_id: int) -> list[UserSubscription]:
    result = await db.execute(
        select(UserSubscription)
        .where(
            UserSubscription.user_id == user_id,
            UserSubscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .with_for_update()
    )
    return list(result.scalars().all())


async def get_latest_pending_subscription(
    db: AsyncSession,
    user_id: int,
    package_id: int,
    *,
    for_update: bool = False,
) -> UserSubscription | None:
    query = (
        select(UserSubscription)
        .where(
            UserSubscription.user_id == user_id,
            UserSubscription.package_id == package_id,
            UserSubscription.status == SubscriptionStatus.PENDING_VERIFICATION.value,
        )
        .order_by(UserSubscription.created_at.desc(), UserSubscription.id.desc())
        .limit(1)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


# ---------- subscription transactions ----------


async def create_subscription_transaction(
    db: AsyncSession,
    subscription: UserSubscription,
    amount_cents: int,
    currency: str,
    *,
    status: SubscriptionTransactionStatus = SubscriptionTransactionStatus.PENDING,
    payment_method: str | None = None,
) -> SubscriptionTransaction:
    entry = SubscriptionTransaction(
        user_id=subscription.user_id,
        subscription_id=subscription.id,
        package_id=subscription.package_id,
        amount_cents=amount_cents,
        currency=currency,
        status=status.value,
        payment_method=payment_method,
    )
    db.add(entry)
    await db.flush()
    return entry


async def set_subscription_transactions_status(
    db: AsyncSession,
    subscription_id: int,
    status: SubscriptionTransactionStatus,
    payment_method: str | None = None,
) -> int:
    """Move the pending entries of a subscription to ``status``; returns how many changed."""
    result = await db.execute(
        select(SubscriptionTransaction).where(
            SubscriptionTransaction.subscription_id == subscription_id,
            SubscriptionTransaction.status == SubscriptionTransactionStatus.PENDING.value,
        )
    )
    entries = list(result.scalars().all())
    for entry in entries:
        entry.status = status.value
        if payment_method:
            entry.payment_method = payment_method
    await db.flush()
    return len(entries)
