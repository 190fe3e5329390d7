"""Manual-payment transaction pipeline.

A purchase moves ``pending_payment → pending_verification → completed | declined``.
The user initiates it against a country payment method, submits the reference
of the payment they made, and an admin verifies it. Completing a transaction
fulfils the purchased item in the same unit of work as the status change; when
the item to fulfil cannot be found, the payment still commits and a
reconciliation issue is recorded instead.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.config import settings
from meetcute.database.crud.boost import get_boost_package_by_id
from meetcute.database.crud.gift import create_user_gift, get_gift_item_by_id
from meetcute.database.crud.payment_method import get_payment_method_type_by_id
from meetcute.database.crud.reconciliation import create_reconciliation_issue
from meetcute.database.crud.subscription import (
    create_subscription_transaction,
    create_user_subscription,
    get_latest_pending_subscription,
    get_package_by_id,
    get_user_subscription,
    set_subscription_transactions_status,
)
from meetcute.database.crud.transaction import (
    create_transaction,
    get_pending_verification_transactions,
    get_transaction_by_id,
    get_user_transaction,
    get_user_transactions,
    get_user_transactions_count,
)
from meetcute.database.crud.user import get_user_by_id
from meetcute.database.models import (
    ItemCategory,
    ProfileBoost,
    ReconciliationIssue,
    ReconciliationIssueKind,
    SubscriptionStatus,
    SubscriptionTransactionStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    UserGift,
    UserSubscription,
)
from meetcute.services.balance_service import credit_balance
from meetcute.services.boost_service import PROFILE_BOOST_FEATURE, grant_purchased_boost
from meetcute.services.errors import (
    InvalidStateTransitionError,
    NotAwaitingReferenceError,
    NotFoundError,
    PackageNotFoundError,
    ValidationError,
)
from meetcute.services.gift_service import check_tier_requirement, get_sendable_gift_item, validate_recipient
from meetcute.services.payment_method_service import require_active_method
from meetcute.services.subscription_service import activate_subscription
from meetcute.services.tier_service import ensure_feature_access, recompute_user_role, resolve_user_tier
from meetcute.services.unit_of_work import unit_of_work
from meetcute.utils.money import format_amount, format_money_from_minor, normalize_currency


logger = logging.getLogger(__name__)


VERIFICATION_OUTCOMES = (TransactionStatus.COMPLETED, TransactionStatus.DECLINED)


@dataclass(slots=True)
class PricedItem:
    amount_cents: int
    currency: str
    metadata: dict | None = None


@dataclass(slots=True)
class InitiationResult:
    transaction: Transaction
    payment_instructions: str | None
    payment_configuration_details: dict | None


@dataclass(slots=True)
class VerificationResult:
    transaction: Transaction
    fulfillment: str
    subscription: UserSubscription | None = None
    gift: UserGift | None = None
    gift_name: str | None = None
    boost: ProfileBoost | None = None
    reconciliation_issue: ReconciliationIssue | None = None


def parse_item_category(value: str | ItemCategory) -> ItemCategory:
    if isinstance(value, ItemCategory):
        return value
    try:
        return ItemCategory((value or '').strip().lower())
    except ValueError as error:
        allowed = ', '.join(category.value for category in ItemCategory)
        raise ValidationError(f'Invalid item category. Use one of: {allowed}') from error


def _require_positive_id(value: int | None, name: str) -> int:
    if value is None or isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f'{name} must be a positive integer')
    return value


# ---------- initiation ----------


async def _price_subscription(db: AsyncSession, user_id: int, item_id: int) -> PricedItem:
    package = await get_package_by_id(db, item_id)
    if package is None or not package.is_active:
        raise PackageNotFoundError(item_id)
    return PricedItem(amount_cents=package.price_cents, currency=normalize_currency(package.currency))


async def _price_gift(
    db: AsyncSession,
    user_id: int,
    item_id: int,
    recipient_id: int,
    message: str | None,
    is_anonymous: bool,
) -> PricedItem:
    await validate_recipient(db, user_id, recipient_id)
    item = await get_sendable_gift_item(db, item_id)
    check_tier_requirement(item, await resolve_user_tier(db, user_id))
    return PricedItem(
        amount_cents=item.price_cents,
        currency=normalize_currency(item.currency),
        metadata={'recipient_id': recipient_id, 'message': message, 'is_anonymous': bool(is_anonymous)},
    )


async def _price_boost(db: AsyncSession, user_id: int, item_id: int) -> PricedItem:
    await ensure_feature_access(db, user_id, PROFILE_BOOST_FEATURE)
    package = await get_boost_package_by_id(db, item_id)
    if package is None or not package.is_active:
        raise NotFoundError('Boost package not found')
    return PricedItem(
        amount_cents=package.price_cents,
        currency=normalize_currency(package.currency),
        metadata={'duration_minutes': package.duration_minutes},
    )


async def initiate(
    db: AsyncSession,
    user_id: int,
    country_id: int,
    payment_method_type_id: int,
    item_category: str | ItemCategory,
    item_id: int | None = None,
    *,
    amount_cents: int | None = None,
    recipient_id: int | None = None,
    message: str | None = None,
    is_anonymous: bool = False,
) -> InitiationResult:
    category = parse_item_category(item_category)
    _require_positive_id(country_id, 'country_id')
    _require_positive_id(payment_method_type_id, 'payment_method_type_id')
    if category == ItemCategory.BALANCE_TOPUP:
        if amount_cents is None or amount_cents < settings.MIN_TOPUP_AMOUNT_CENTS:
            minimum = format_money_from_minor(settings.MIN_TOPUP_AMOUNT_CENTS, settings.get_default_currency())
            raise ValidationError(
                f'Top-up amount must be at least {minimum}',
                code='amount_below_minimum',
            )
    else:
        _require_positive_id(item_id, 'item_id')
    if category == ItemCategory.GIFT:
        _require_positive_id(recipient_id, 'recipient_id')

    async with unit_of_work(db, f'initiate {category.value} transaction for user #{user_id}'):
        if category == ItemCategory.SUBSCRIPTION:
            priced = await _price_subscription(db, user_id, item_id)
        elif category == ItemCategory.GIFT:
            priced = await _price_gift(db, user_id, item_id, recipient_id, message, is_anonymous)
        elif category == ItemCategory.BOOST:
            priced = await _price_boost(db, user_id, item_id)
        else:
            priced = PricedItem(amount_cents=amount_cents, currency=settings.get_default_currency())

        if priced.amount_cents <= 0:
            raise ValidationError('Invalid amount for transaction')

        method = await require_active_method(db, country_id, payment_method_type_id)

        transaction = await create_transaction(
            db,
            user_id,
            priced.amount_cents,
            priced.currency,
            type=TransactionType.MANUAL_PAYMENT,
            status=TransactionStatus.PENDING_PAYMENT,
            item_category=category,
            payable_item_id=item_id if category != ItemCategory.BALANCE_TOPUP else None,
            payment_country_id=country_id,
            payment_method_type_id=payment_method_type_id,
            item_metadata=priced.metadata,
        )

        if category == ItemCategory.SUBSCRIPTION:
            pending = await create_user_subscription(db, user_id, item_id)
            await create_subscription_transaction(
                db,
                pending,
                priced.amount_cents,
                priced.currency,
                payment_method=method.payment_method_type.name if method.payment_method_type else None,
            )
            transaction.item_metadata = {'user_subscription_id': pending.id}
            await db.flush()

        instructions = method.user_instructions
        configuration_details = method.configuration_details

    return InitiationResult(
        transaction=transaction,
        payment_instructions=instructions,
        payment_configuration_details=configuration_details,
    )


# ---------- user side ----------


async def submit_reference(db: AsyncSession, user_id: int, transaction_id: int, reference: str) -> Transaction:
    if not reference or not reference.strip():
        raise ValidationError('Payment reference is required')

    async with unit_of_work(db, f'submit reference for transaction #{transaction_id}'):
        transaction = await get_user_transaction(db, transaction_id, user_id, for_update=True)
        if transaction is None:
            raise NotFoundError('Transaction not found or access denied.')
        if transaction.status != TransactionStatus.PENDING_PAYMENT.value:
            raise NotAwaitingReferenceError(
                f'Transaction is {transaction.status} and is not awaiting a payment reference'
            )

        transaction.user_provided_reference = reference
        transaction.status = TransactionStatus.PENDING_VERIFICATION.value
        await db.flush()

    logger.info('🧾 Transaction #%s of user #%s is waiting for verification', transaction_id, user_id)
    return transaction


async def get_transaction_status(db: AsyncSession, user_id: int, transaction_id: int) -> Transaction:
    transaction = await get_user_transaction(db, transaction_id, user_id)
    if transaction is None:
        raise NotFoundError('Transaction not found or access denied.')
    return transaction


async def list_user_transactions(
    db: AsyncSession,
    user_id: int,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[Transaction], int]:
    items = await get_user_transactions(db, user_id, limit=limit, offset=offset)
    total = await get_user_transactions_count(db, user_id)
    return items, total


# ---------- admin side ----------


async def list_pending_verification(
    db: AsyncSession,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Transaction], int]:
    return await get_pending_verification_transactions(db, limit=limit, offset=offset)


async def get_transaction_for_admin(db: AsyncSession, transaction_id: int) -> Transaction:
    transaction = await get_transaction_by_id(db, transaction_id)
    if transaction is None:
        raise NotFoundError('Transaction not found')
    return transaction


async def _payment_method_label(db: AsyncSession, transaction: Transaction) -> str:
    if transaction.payment_method_type_id:
        method_type = await get_payment_method_type_by_id(db, transaction.payment_method_type_id)
        if method_type is not None:
            return method_type.name
    return 'manual'


async def _find_pending_subscription(db: AsyncSession, transaction: Transaction) -> UserSubscription | None:
    subscription_id = (transaction.item_metadata or {}).get('user_subscription_id')
    if subscription_id:
        subscription = await get_user_subscription(db, subscription_id, transaction.user_id, for_update=True)
        if subscription is not None and subscription.status == SubscriptionStatus.PENDING_VERIFICATION.value:
            return subscription
    return await get_latest_pending_subscription(db, transaction.user_id, transaction.payable_item_id, for_update=True)


async def _fulfil_subscription(db: AsyncSession, transaction: Transaction) -> VerificationResult:
    pending = await _find_pending_subscription(db, transaction)
    if pending is None:
        issue = await create_reconciliation_issue(
            db,
            transaction.id,
            ReconciliationIssueKind.MISSING_PENDING_SUBSCRIPTION,
            {'user_id': transaction.user_id, 'package_id': transaction.payable_item_id},
        )
        return VerificationResult(transaction=transaction, fulfillment='reconciliation_required', reconciliation_issue=issue)

    subscription = await activate_subscription(
        db,
        transaction.user_id,
        transaction.payable_item_id,
        original_transaction_id=transaction.id,
        payment_method_label=await _payment_method_label(db, transaction),
        pending_subscription=pending,
    )
    return VerificationResult(transaction=transaction, fulfillment='subscription_activated', subscription=subscription)


async def _fulfil_gift(db: AsyncSession, transaction: Transaction) -> VerificationResult:
    metadata = transaction.item_metadata or {}
    recipient_id = metadata.get('recipient_id')
    recipient = await get_user_by_id(db, recipient_id) if recipient_id else None
    item = await get_gift_item_by_id(db, transaction.payable_item_id)

    kind = None
    if recipient is None:
        kind = ReconciliationIssueKind.MISSING_GIFT_RECIPIENT
    elif item is None:
        kind = ReconciliationIssueKind.MISSING_GIFT_ITEM
    if kind is not None:
        issue = await create_reconciliation_issue(
            db,
            transaction.id,
            kind,
            {'recipient_id': recipient_id, 'gift_item_id': transaction.payable_item_id},
        )
        return VerificationResult(transaction=transaction, fulfillment='reconciliation_required', reconciliation_issue=issue)

    # The snapshot is what was actually paid, not the current catalog price
    gift = await create_user_gift(
        db,
        transaction.user_id,
        recipient.id,
        item.id,
        transaction.amount_cents,
        message=metadata.get('message'),
        is_anonymous=bool(metadata.get('is_anonymous')),
        transaction_id=transaction.id,
    )
    return VerificationResult(transaction=transaction, fulfillment='gift_delivered', gift=gift, gift_name=item.name)


async def _fulfil_boost(db: AsyncSession, transaction: Transaction) -> VerificationResult:
    package = await get_boost_package_by_id(db, transaction.payable_item_id)
    if package is None:
        issue = await create_reconciliation_issue(
            db,
            transaction.id,
            ReconciliationIssueKind.MISSING_BOOST_PACKAGE,
            {'boost_package_id': transaction.payable_item_id},
        )
        return VerificationResult(transaction=transaction, fulfillment='reconciliation_required', reconciliation_issue=issue)

    boost = await grant_purchased_boost(db, transaction.user_id, package, transaction.id)
    return VerificationResult(transaction=transaction, fulfillment='boost_granted', boost=boost)


async def _fulfil_balance_topup(db: AsyncSession, transaction: Transaction) -> VerificationResult:
    await credit_balance(db, transaction.user_id, transaction.amount_cents, f'top-up transaction #{transaction.id}')
    return VerificationResult(transaction=transaction, fulfillment='balance_credited')


FULFILLERS = {
    ItemCategory.SUBSCRIPTION.value: _fulfil_subscription,
    ItemCategory.GIFT.value: _fulfil_gift,
    ItemCategory.BOOST.value: _fulfil_boost,
    ItemCategory.BALANCE_TOPUP.value: _fulfil_balance_topup,
}


async def _release_declined_subscription(db: AsyncSession, transaction: Transaction) -> None:
    subscription_id = (transaction.item_metadata or {}).get('user_subscription_id')
    if not subscription_id:
        return
    subscription = await get_user_subscription(db, subscription_id, transaction.user_id, for_update=True)
    if subscription is None or subscription.status != SubscriptionStatus.PENDING_VERIFICATION.value:
        return

    subscription.status = SubscriptionStatus.CANCELLED.value
    subscription.auto_renew = False
    await set_subscription_transactions_status(db, subscription.id, SubscriptionTransactionStatus.DECLINED)
    await recompute_user_role(db, transaction.user_id)


async def verify(
    db: AsyncSession,
    transaction_id: int,
    admin_id: int,
    new_status: str | TransactionStatus,
    notes: str | None = None,
) -> VerificationResult:
    try:
        target = TransactionStatus(new_status) if not isinstance(new_status, TransactionStatus) else new_status
    except ValueError as error:
        raise ValidationError('Status must be either completed or declined') from error
    if target not in VERIFICATION_OUTCOMES:
        raise ValidationError('Status must be either completed or declined')

    async with unit_of_work(db, f'verify transaction #{transaction_id} as {target.value}'):
        transaction = await get_transaction_by_id(db, transaction_id, for_update=True)
        if transaction is None:
            raise NotFoundError('Transaction not found')
        if transaction.status != TransactionStatus.PENDING_VERIFICATION.value:
            raise InvalidStateTransitionError(
                f'Transaction is {transaction.status}, only transactions pending verification can be verified',
                current_status=transaction.status,
                target_status=target.value,
            )

        transaction.status = target.value
        transaction.admin_notes = notes
        transaction.verified_by = admin_id
        await db.flush()

        if target == TransactionStatus.COMPLETED:
            fulfil = FULFILLERS.get(transaction.item_category)
            if fulfil is None:
                logger.warning('Transaction #%s has no fulfillment for category %s', transaction.id, transaction.item_category)
                result = VerificationResult(transaction=transaction, fulfillment='none')
            else:
                result = await fulfil(db, transaction)
        else:
            if transaction.item_category == ItemCategory.SUBSCRIPTION.value:
                await _release_declined_subscription(db, transaction)
            result = VerificationResult(transaction=transaction, fulfillment='none')

    logger.info(
        '🧾 Transaction #%s (%s, %s) verified as %s by admin #%s: %s',
        transaction_id,
        transaction.item_category,
        format_amount(transaction.amount_cents, transaction.currency),
        target.value,
        admin_id,
        result.fulfillment,
    )
    return result
