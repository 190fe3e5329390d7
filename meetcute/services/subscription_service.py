import logging
from dataclasses import dataclass, field
from datetime import datetime

from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.crud.subscription import (
    create_feature,
    create_package,
    create_subscription_transaction,
    create_user_subscription,
    delete_feature,
    get_active_packages,
    get_active_subscriptions_for_update,
    get_feature_by_id,
    get_features_for_tier,
    get_features_for_tiers,
    get_latest_active_subscription,
    get_package_by_id,
    get_user_subscription,
    set_subscription_transactions_status,
    update_package,
)
from meetcute.database.crud.transaction import create_transaction
from meetcute.database.models import (
    ItemCategory,
    SubscriptionFeature,
    SubscriptionPackage,
    SubscriptionStatus,
    SubscriptionTransactionStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    UserSubscription,
)
from meetcute.services.balance_service import debit_balance
from meetcute.services.errors import (
    InvalidStateTransitionError,
    NotFoundError,
    PackageNotFoundError,
    ValidationError,
)
from meetcute.services.tier_service import parse_tier, recompute_user_role
from meetcute.services.unit_of_work import unit_of_work
from meetcute.utils.money import normalize_currency
from meetcute.utils.timezone import utcnow


logger = logging.getLogger(__name__)


SITE_BALANCE_PAYMENT_LABEL = 'site_balance'

BILLING_INTERVAL_MONTHS = {
    'monthly': 1,
    'annually': 12,
    'yearly': 12,
}


@dataclass(slots=True)
class PackageWithFeatures:
    package: SubscriptionPackage
    features: list[SubscriptionFeature] = field(default_factory=list)


@dataclass(slots=True)
class SubscriptionWithFeatures:
    subscription: UserSubscription
    package: SubscriptionPackage
    features: list[SubscriptionFeature] = field(default_factory=list)


@dataclass(slots=True)
class BalancePurchaseResult:
    subscription: UserSubscription
    transaction: Transaction
    balance_cents: int


def compute_end_date(package: SubscriptionPackage, start: datetime) -> datetime:
    if package.duration_months:
        return start + relativedelta(months=package.duration_months)
    months = BILLING_INTERVAL_MONTHS.get((package.billing_interval or '').strip().lower(), 1)
    return start + relativedelta(months=months)


def _clean_package_data(data: dict, *, partial: bool) -> dict:
    cleaned = dict(data)
    if 'tier_level' in cleaned or not partial:
        cleaned['tier_level'] = parse_tier(cleaned.get('tier_level')).value
    if 'price_cents' in cleaned or not partial:
        price = cleaned.get('price_cents')
        if price is None or price < 0:
            raise ValidationError('Package price must be zero or greater')
    if 'duration_months' in cleaned and cleaned['duration_months'] is not None and cleaned['duration_months'] <= 0:
        raise ValidationError('duration_months must be positive')
    if 'name' in cleaned or not partial:
        if not (cleaned.get('name') or '').strip():
            raise ValidationError('Package name is required')
    if 'currency' in cleaned:
        cleaned['currency'] = normalize_currency(cleaned['currency'])
    return cleaned


# ---------- catalog ----------


async def list_packages(db: AsyncSession) -> list[PackageWithFeatures]:
    packages = await get_active_packages(db)
    features = await get_features_for_tiers(db, sorted({package.tier_level for package in packages}))
    return [PackageWithFeatures(package=package, features=features.get(package.tier_level, [])) for package in packages]


async def get_package(db: AsyncSession, package_id: int) -> PackageWithFeatures:
    package = await get_package_by_id(db, package_id)
    if package is None:
        raise PackageNotFoundError(package_id)
    return PackageWithFeatures(package=package, features=await get_features_for_tier(db, package.tier_level))


async def create_subscription_package(db: AsyncSession, data: dict) -> SubscriptionPackage:
    cleaned = _clean_package_data(data, partial=False)
    async with unit_of_work(db, 'create subscription package'):
        package = await create_package(db, cleaned)
    return package


async def update_subscription_package(db: AsyncSession, package_id: int, data: dict) -> SubscriptionPackage:
    cleaned = _clean_package_data(data, partial=True)
    async with unit_of_work(db, f'update subscription package #{package_id}'):
        package = await get_package_by_id(db, package_id)
        if package is None:
            raise PackageNotFoundError(package_id)
        await update_package(db, package, cleaned)
    logger.info('📦 Subscription package #%s updated: %s', package_id, sorted(cleaned))
    return package


async def create_tier_feature(
    db: AsyncSession,
    tier_level: str,
    feature_key: str,
    name: str,
    description: str | None = None,
) -> SubscriptionFeature:
    tier = parse_tier(tier_level)
    feature_key = (feature_key or '').strip()
    if not feature_key or not (name or '').strip():
        raise ValidationError('feature_key and name are required')
    async with unit_of_work(db, 'create tier feature'):
        feature = await create_feature(db, tier.value, feature_key, name.strip(), description)
    return feature


async def delete_tier_feature(db: AsyncSession, feature_id: int) -> None:
    async with unit_of_work(db, f'delete tier feature #{feature_id}'):
        feature = await get_feature_by_id(db, feature_id)
        if feature is None:
            raise NotFoundError('Feature not found')
        await delete_feature(db, feature)


# ---------- user subscriptions ----------


async def get_own_subscription(db: AsyncSession, user_id: int) -> SubscriptionWithFeatures | None:
    subscription = await get_latest_active_subscription(db, user_id)
    if subscription is None:
        return None
    features = await get_features_for_tier(db, subscription.package.tier_level)
    return SubscriptionWithFeatures(subscription=subscription, package=subscription.package, features=features)


async def activate_subscription(
    db: AsyncSession,
    user_id: int,
    package_id: int,
    *,
    original_transaction_id: int,
    payment_method_label: str,
    pending_subscription: UserSubscription | None = None,
) -> UserSubscription:
    """Make ``package_id`` the user's only active subscription.

    Runs inside the caller's unit of work. Prior active subscriptions are
    cancelled, the given pending subscription (or a new row) becomes active
    and the user's role is recomputed.
    """
    package = await get_package_by_id(db, package_id)
    if package is None:
        raise PackageNotFoundError(package_id)

    now = utcnow()
    end_date = compute_end_date(package, now)

    for prior in await get_active_subscriptions_for_update(db, user_id):
        if pending_subscription is not None and prior.id == pending_subscription.id:
            continue
        prior.status = SubscriptionStatus.CANCELLED.value
        prior.auto_renew = False
        logger.info('🔁 Subscription #%s of user #%s superseded by package #%s', prior.id, user_id, package_id)

    if pending_subscription is None:
        subscription = await create_user_subscription(
            db,
            user_id,
            package.id,
            status=SubscriptionStatus.ACTIVE,
            start_date=now,
            end_date=end_date,
            payment_method_id=str(original_transaction_id),
        )
        await create_subscription_transaction(
            db,
            subscription,
            package.price_cents,
            package.currency,
            status=SubscriptionTransactionStatus.COMPLETED,
            payment_method=payment_method_label,
        )
    else:
        subscription = pending_subscription
        subscription.status = SubscriptionStatus.ACTIVE.value
        subscription.start_date = now
        subscription.end_date = end_date
        subscription.payment_method_id = str(original_transaction_id)
        await set_subscription_transactions_status(
            db,
            subscription.id,
            SubscriptionTransactionStatus.COMPLETED,
            payment_method=payment_method_label,
        )

    await db.flush()
    await recompute_user_role(db, user_id)

    logger.info(
        '✅ Subscription #%s activated for user #%s: %s until %s (transaction #%s)',
        subscription.id,
        user_id,
        package.tier_level,
        end_date.isoformat(),
        original_transaction_id,
    )
    return subscription


async def purchase_with_balance(db: AsyncSession, user_id: int, package_id: int) -> BalancePurchaseResult:
    async with unit_of_work(db, f'purchase package #{package_id} with balance'):
        package = await get_package_by_id(db, package_id)
        if package is None or not package.is_active:
            raise PackageNotFoundError(package_id)

        account = await debit_balance(db, user_id, package.price_cents, f'subscription package #{package.id}')
        transaction = await create_transaction(
            db,
            user_id,
            package.price_cents,
            package.currency,
            type=TransactionType.SUBSCRIPTION_SITE_BALANCE,
            status=TransactionStatus.COMPLETED,
            item_category=ItemCategory.SUBSCRIPTION,
            payable_item_id=package.id,
        )
        subscription = await activate_subscription(
            db,
            user_id,
            package.id,
            original_transaction_id=transaction.id,
            payment_method_label=SITE_BALANCE_PAYMENT_LABEL,
        )
        balance_cents = account.balance_cents

    return BalancePurchaseResult(subscription=subscription, transaction=transaction, balance_cents=balance_cents)


async def cancel_subscription(db: AsyncSession, user_id: int, subscription_id: int) -> UserSubscription:
    async with unit_of_work(db, f'cancel subscription #{subscription_id}'):
        subscription = await get_user_subscription(db, subscription_id, user_id, for_update=True)
        if subscription is None:
            raise NotFoundError('Subscription not found')

        cancellable = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.PENDING_VERIFICATION.value)
        if subscription.status not in cancellable:
            raise InvalidStateTransitionError(
                f'Subscription is {subscription.status} and cannot be cancelled',
                current_status=subscription.status,
                target_status=SubscriptionStatus.CANCELLED.value,
            )

        was_pending = subscription.status == SubscriptionStatus.PENDING_VERIFICATION.value
        subscription.status = SubscriptionStatus.CANCELLED.value
        subscription.auto_renew = False
        if was_pending:
            await set_subscription_transactions_status(db, subscription.id, SubscriptionTransactionStatus.DECLINED)
        await db.flush()

        role = await recompute_user_role(db, user_id)

    logger.info('🛑 Subscription #%s of user #%s cancelled, role is now %s', subscription_id, user_id, role)
    return subscription
