from datetime import timedelta

import pytest
from dateutil.relativedelta import relativedelta
from sqlalchemy import func, select

from meetcute.database.crud.user import get_user_by_id
from meetcute.database.models import SubscriptionTransaction, Transaction, UserGift, UserSubscription
from meetcute.services import (
    balance_service,
    gift_service,
    reconciliation_service,
    subscription_service,
    transaction_service,
)
from meetcute.services.errors import (
    InsufficientTierError,
    InvalidStateTransitionError,
    NotAwaitingReferenceError,
    NotFoundError,
    PackageNotFoundError,
    PaymentMethodUnavailableError,
    SubscriptionRequiredError,
    ValidationError,
)


async def _initiate_premium(db, user_id, catalog):
    return await transaction_service.initiate(
        db,
        user_id,
        catalog.country_id,
        catalog.bank_transfer_id,
        'subscription',
        catalog.premium_package_id,
    )


async def _transaction_count(db) -> int:
    return (await db.execute(select(func.count(Transaction.id)))).scalar()


async def test_premium_purchase_end_to_end(db, alice_id, admin_id, catalog):
    initiated = await _initiate_premium(db, alice_id, catalog)
    transaction_id = initiated.transaction.id

    assert initiated.transaction.status == 'pending_payment'
    assert initiated.transaction.amount_cents == 2500
    assert initiated.transaction.type == 'manual_payment'
    assert initiated.payment_instructions.startswith('Transfer to account')
    assert initiated.payment_configuration_details['bank_name'] == 'First Bank'

    pending = (await db.execute(select(UserSubscription))).scalar_one()
    assert pending.status == 'pending_verification'
    assert initiated.transaction.item_metadata == {'user_subscription_id': pending.id}

    submitted = await transaction_service.submit_reference(db, alice_id, transaction_id, 'REF123')
    assert submitted.status == 'pending_verification'
    assert submitted.user_provided_reference == 'REF123'

    result = await transaction_service.verify(db, transaction_id, admin_id, 'completed', 'Seen on statement')

    assert result.fulfillment == 'subscription_activated'
    assert result.transaction.status == 'completed'
    assert result.transaction.verified_by == admin_id
    assert result.transaction.admin_notes == 'Seen on statement'
    assert result.subscription.id == pending.id
    assert result.subscription.status == 'active'
    assert result.subscription.start_date + relativedelta(months=1) == result.subscription.end_date

    user = await get_user_by_id(db, alice_id)
    await db.refresh(user)
    assert user.role == 'premium'

    record = (await db.execute(select(SubscriptionTransaction))).scalar_one()
    assert (record.status, record.payment_method) == ('completed', 'Bank Transfer')


async def test_reference_is_stored_verbatim(db, alice_id, catalog):
    initiated = await _initiate_premium(db, alice_id, catalog)

    submitted = await transaction_service.submit_reference(db, alice_id, initiated.transaction.id, '  ref 123  ')

    assert submitted.user_provided_reference == '  ref 123  '


async def test_reference_can_only_be_submitted_once(db, alice_id, catalog):
    initiated = await _initiate_premium(db, alice_id, catalog)
    transaction_id = initiated.transaction.id
    await transaction_service.submit_reference(db, alice_id, transaction_id, 'REF123')

    with pytest.raises(NotAwaitingReferenceError):
        await transaction_service.submit_reference(db, alice_id, transaction_id, 'REF456')

    transaction = await transaction_service.get_transaction_status(db, alice_id, transaction_id)
    assert transaction.user_provided_reference == 'REF123'


async def test_reference_rules(db, alice_id, bob_id, catalog):
    initiated = await _initiate_premium(db, alice_id, catalog)
    transaction_id = initiated.transaction.id

    with pytest.raises(ValidationError):
        await transaction_service.submit_reference(db, alice_id, transaction_id, '   ')
    with pytest.raises(NotFoundError) as exc_info:
        await transaction_service.submit_reference(db, bob_id, transaction_id, 'REF123')
    assert str(exc_info.value) == 'Transaction not found or access denied.'

    with pytest.raises(NotFoundError):
        await transaction_service.get_transaction_status(db, bob_id, transaction_id)


async def test_inactive_payment_method_creates_nothing(db, alice_id, catalog):
    with pytest.raises(PaymentMethodUnavailableError):
        await transaction_service.initiate(
            db, alice_id, catalog.country_id, catalog.crypto_id, 'subscription', catalog.premium_package_id
        )

    assert await _transaction_count(db) == 0
    assert (await db.execute(select(func.count(UserSubscription.id)))).scalar() == 0


async def test_initiate_validation(db, alice_id, catalog):
    with pytest.raises(ValidationError):
        await transaction_service.initiate(db, alice_id, catalog.country_id, catalog.bank_transfer_id, 'jewellery', 1)
    with pytest.raises(ValidationError):
        await transaction_service.initiate(db, alice_id, catalog.country_id, catalog.bank_transfer_id, 'subscription')
    with pytest.raises(PackageNotFoundError):
        await transaction_service.initiate(db, alice_id, catalog.country_id, catalog.bank_transfer_id, 'subscription', 9999)
    with pytest.raises(ValidationError) as exc_info:
        await transaction_service.initiate(
            db, alice_id, catalog.country_id, catalog.bank_transfer_id, 'balance_topup', amount_cents=50
        )
    assert exc_info.value.code == 'amount_below_minimum'
    assert exc_info.value.message == 'Top-up amount must be at least $1.00'

    assert await _transaction_count(db) == 0


async def test_verify_only_accepts_final_outcomes(db, alice_id, admin_id, catalog):
    initiated = await _initiate_premium(db, alice_id, catalog)
    transaction_id = initiated.transaction.id
    await transaction_service.submit_reference(db, alice_id, transaction_id, 'REF123')

    for status in ('pending_payment', 'pending_verification', 'refunded'):
        with pytest.raises(ValidationError):
            await transaction_service.verify(db, transaction_id, admin_id, status)


async def test_verify_requires_pending_verification(db, alice_id, admin_id, catalog):
    initiated = await _initiate_premium(db, alice_id, catalog)
    transaction_id = initiated.transaction.id

    with pytest.raises(InvalidStateTransitionError):
        await transaction_service.verify(db, transaction_id, admin_id, 'completed')

    await transaction_service.submit_reference(db, alice_id, transaction_id, 'REF123')
    await transaction_service.verify(db, transaction_id, admin_id, 'completed')

    with pytest.raises(InvalidStateTransitionError):
        await transaction_service.verify(db, transaction_id, admin_id, 'declined')
    with pytest.raises(NotFoundError):
        await transaction_service.verify(db, 9999, admin_id, 'completed')


async def test_declined_subscription_payment_releases_pending_subscription(db, alice_id, admin_id, catalog):
    initiated = await _initiate_premium(db, alice_id, catalog)
    transaction_id = initiated.transaction.id
    await transaction_service.submit_reference(db, alice_id, transaction_id, 'REF123')

    result = await transaction_service.verify(db, transaction_id, admin_id, 'declined', 'No such payment')

    assert result.fulfillment == 'none'
    assert result.transaction.status == 'declined'
    subscription = (await db.execute(select(UserSubscription))).scalar_one()
    await db.refresh(subscription)
    assert subscription.status == 'cancelled'
    record = (await db.execute(select(SubscriptionTransaction))).scalar_one()
    await db.refresh(record)
    assert record.status == 'declined'


async def test_missing_pending_subscription_opens_reconciliation_issue(db, alice_id, admin_id, catalog):
    initiated = await _initiate_premium(db, alice_id, catalog)
    transaction_id = initiated.transaction.id
    subscription_id = initiated.transaction.item_metadata['user_subscription_id']
    await transaction_service.submit_reference(db, alice_id, transaction_id, 'REF123')
    await subscription_service.cancel_subscription(db, alice_id, subscription_id)

    result = await transaction_service.verify(db, transaction_id, admin_id, 'completed')

    assert result.fulfillment == 'reconciliation_required'
    assert result.transaction.status == 'completed'
    assert result.reconciliation_issue.kind == 'missing_pending_subscription'
    issue_id = result.reconciliation_issue.id

    issues, total = await reconciliation_service.list_issues(db, is_resolved=False)
    assert total == 1
    assert issues[0].transaction_id == transaction_id

    resolved = await reconciliation_service.resolve_issue(db, issue_id, admin_id, 'Activated by hand')
    assert resolved.is_resolved is True
    assert resolved.resolved_by == admin_id
    with pytest.raises(InvalidStateTransitionError):
        await reconciliation_service.resolve_issue(db, issue_id, admin_id)


async def test_gift_paid_manually_is_delivered_on_verification(db, alice_id, bob_id, admin_id, catalog):
    initiated = await transaction_service.initiate(
        db,
        alice_id,
        catalog.country_id,
        catalog.bank_transfer_id,
        'gift',
        catalog.rose_id,
        recipient_id=bob_id,
        message='For you',
        is_anonymous=True,
    )
    transaction_id = initiated.transaction.id
    await transaction_service.submit_reference(db, alice_id, transaction_id, 'REF-GIFT')
    await gift_service.update_item(db, catalog.rose_id, {'price_cents': 1500})

    result = await transaction_service.verify(db, transaction_id, admin_id, 'completed')

    assert result.fulfillment == 'gift_delivered'
    assert result.gift.recipient_id == bob_id
    assert result.gift.sender_id == alice_id
    assert result.gift.original_purchase_price_cents == 1000
    assert result.gift.is_anonymous is True
    assert result.gift.message == 'For you'
    assert result.gift.transaction_id == transaction_id
    assert result.gift_name == 'Rose'


async def test_tier_gated_gift_is_checked_at_initiation(db, alice_id, bob_id, catalog):
    with pytest.raises(InsufficientTierError):
        await transaction_service.initiate(
            db,
            alice_id,
            catalog.country_id,
            catalog.bank_transfer_id,
            'gift',
            catalog.diamond_id,
            recipient_id=bob_id,
        )

    assert (await db.execute(select(func.count(UserGift.id)))).scalar() == 0
    assert await _transaction_count(db) == 0


async def test_balance_topup_is_credited_on_verification(db, alice_id, admin_id, catalog):
    initiated = await transaction_service.initiate(
        db, alice_id, catalog.country_id, catalog.bank_transfer_id, 'balance_topup', amount_cents=5000
    )
    transaction_id = initiated.transaction.id
    assert initiated.transaction.payable_item_id is None
    await transaction_service.submit_reference(db, alice_id, transaction_id, 'REF-TOPUP')

    result = await transaction_service.verify(db, transaction_id, admin_id, 'completed')

    assert result.fulfillment == 'balance_credited'
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 5000


async def test_boost_purchase_requires_the_feature(db, alice_id, admin_id, catalog, fund):
    with pytest.raises(SubscriptionRequiredError):
        await transaction_service.initiate(
            db, alice_id, catalog.country_id, catalog.bank_transfer_id, 'boost', catalog.boost_package_id
        )

    await fund(alice_id, 2500)
    await subscription_service.purchase_with_balance(db, alice_id, catalog.premium_package_id)

    initiated = await transaction_service.initiate(
        db, alice_id, catalog.country_id, catalog.bank_transfer_id, 'boost', catalog.boost_package_id
    )
    transaction_id = initiated.transaction.id
    await transaction_service.submit_reference(db, alice_id, transaction_id, 'REF-BOOST')
    result = await transaction_service.verify(db, transaction_id, admin_id, 'completed')

    assert result.fulfillment == 'boost_granted'
    assert result.boost.source == 'purchase'
    assert result.boost.expires_at - result.boost.started_at == timedelta(minutes=60)


async def test_user_history_and_admin_queue(db, alice_id, bob_id, catalog):
    first = await _initiate_premium(db, alice_id, catalog)
    first_id = first.transaction.id
    second = await _initiate_premium(db, bob_id, catalog)
    second_id = second.transaction.id
    third = await transaction_service.initiate(
        db, alice_id, catalog.country_id, catalog.bank_transfer_id, 'balance_topup', amount_cents=1000
    )
    third_id = third.transaction.id

    await transaction_service.submit_reference(db, bob_id, second_id, 'B')
    await transaction_service.submit_reference(db, alice_id, first_id, 'A')

    items, total = await transaction_service.list_user_transactions(db, alice_id, limit=1)
    assert total == 2
    assert [item.id for item in items] == [third_id]

    queue, queue_total = await transaction_service.list_pending_verification(db)
    assert queue_total == 2
    assert [item.id for item in queue] == [first_id, second_id]
