"""Tier resolution, role recomputation and feature gating."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.crud.subscription import get_features_for_tier, get_highest_active_subscription
from meetcute.database.crud.user import get_user_by_id, set_user_role
from meetcute.database.models import TierLevel, UserRole
from meetcute.services.errors import (
    FeatureNotAvailableError,
    NotFoundError,
    SubscriptionRequiredError,
    ValidationError,
)


logger = logging.getLogger(__name__)


def parse_tier(value: str | TierLevel | None, *, allow_none: bool = False) -> TierLevel | None:
    if value is None:
        if allow_none:
            return None
        raise ValidationError('Tier level is required')
    try:
        return TierLevel.parse(value)
    except ValueError as error:
        raise ValidationError(str(error)) from error


async def resolve_user_tier(db: AsyncSession, user_id: int) -> TierLevel:
    """Tier of the user's most expensive active subscription, Basic when there is none."""
    subscription = await get_highest_active_subscription(db, user_id)
    if subscription is None:
        return TierLevel.BASIC
    return subscription.package.tier


async def recompute_user_role(db: AsyncSession, user_id: int) -> str:
    """Re-derive ``User.role`` from active subscriptions. Admin roles are never touched."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise NotFoundError(f'User {user_id} not found')
    if user.role == UserRole.ADMIN.value:
        return user.role

    subscription = await get_highest_active_subscription(db, user_id)
    role = subscription.package.tier.role_name if subscription else UserRole.USER.value
    await set_user_role(db, user, role)
    return role


async def get_active_feature_keys(db: AsyncSession, user_id: int) -> set[str] | None:
    """Feature keys unlocked for the user; None when there is no active subscription."""
    subscription = await get_highest_active_subscription(db, user_id)
    if subscription is None:
        return None
    features = await get_features_for_tier(db, subscription.package.tier_level)
    return {feature.feature_key for feature in features}


async def ensure_active_subscription(db: AsyncSession, user_id: int) -> None:
    if await get_highest_active_subscription(db, user_id) is None:
        raise SubscriptionRequiredError()


async def ensure_feature_access(db: AsyncSession, user_id: int, feature_key: str) -> None:
    feature_keys = await get_active_feature_keys(db, user_id)
    if feature_keys is None:
        raise SubscriptionRequiredError()
    if feature_key not in feature_keys:
        logger.info('🔒 User #%s has no access to feature %s', user_id, feature_key)
        raise FeatureNotAvailableError(feature_key)
