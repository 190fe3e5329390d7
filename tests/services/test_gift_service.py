import pytest
from sqlalchemy import func, select

from meetcute.database.crud.gift import create_user_gift
from meetcute.database.models import Transaction, UserGift
from meetcute.services import balance_service, gift_service, subscription_service
from meetcute.services.errors import (
    AlreadyRedeemedError,
    InsufficientBalanceError,
    InsufficientTierError,
    NotFoundError,
    PriceNotRecordedError,
    ValidationError,
)


async def _gift_count(db) -> int:
    result = await db.execute(select(func.count(UserGift.id)))
    return result.scalar()


async def test_send_gift_with_site_balance(db, alice_id, bob_id, catalog, fund):
    await fund(alice_id, 1500)

    result = await gift_service.send_gift(
        db, alice_id, bob_id, catalog.rose_id, message='Hi Bob', use_site_balance=True
    )

    assert result.balance_cents == 500
    assert result.gift.original_purchase_price_cents == 1000
    assert result.gift.transaction_id == result.transaction.id
    assert result.transaction.type == 'gift_site_balance'
    assert result.transaction.status == 'completed'
    assert result.transaction.amount_cents == 1000
    assert result.transaction.item_metadata == {'user_gift_id': result.gift.id, 'recipient_id': bob_id}


async def test_send_gift_without_balance_records_external_payment(db, alice_id, bob_id, catalog):
    result = await gift_service.send_gift(db, alice_id, bob_id, catalog.rose_id)

    assert result.gift_name == 'Rose'
    assert result.balance_cents is None
    assert result.transaction.type == 'gift'
    assert result.transaction.status == 'completed'
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 0


async def test_send_gift_with_short_balance_creates_nothing(db, alice_id, bob_id, catalog, fund):
    await fund(alice_id, 300)

    with pytest.raises(InsufficientBalanceError):
        await gift_service.send_gift(db, alice_id, bob_id, catalog.rose_id, use_site_balance=True)

    assert await _gift_count(db) == 0
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 300


async def test_tier_gated_gift_is_refused_for_lower_tier(db, alice_id, bob_id, catalog, fund):
    await fund(alice_id, 10000)

    with pytest.raises(InsufficientTierError) as exc_info:
        await gift_service.send_gift(db, alice_id, bob_id, catalog.diamond_id, use_site_balance=True)

    detail = exc_info.value.to_detail()
    assert detail['required_tier'] == 'Elite'
    assert detail['actual_tier'] == 'Basic'
    assert await _gift_count(db) == 0
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 10000


async def test_tier_gated_gift_allowed_for_matching_tier(db, alice_id, bob_id, catalog, fund):
    await fund(alice_id, 20000)
    await subscription_service.purchase_with_balance(db, alice_id, catalog.elite_package_id)

    result = await gift_service.send_gift(db, alice_id, bob_id, catalog.diamond_id, use_site_balance=True)

    assert result.gift.original_purchase_price_cents == 5000
    assert result.balance_cents == 20000 - 9900 - 5000


async def test_cannot_gift_yourself_or_unknown_users(db, alice_id, catalog):
    with pytest.raises(ValidationError):
        await gift_service.send_gift(db, alice_id, alice_id, catalog.rose_id)
    with pytest.raises(NotFoundError):
        await gift_service.send_gift(db, alice_id, 9999, catalog.rose_id)


async def test_redeem_gift_credits_73_percent(db, alice_id, bob_id, catalog):
    sent = await gift_service.send_gift(db, alice_id, bob_id, catalog.rose_id)
    gift_id = sent.gift.id

    result = await gift_service.redeem_gift(db, bob_id, gift_id)

    assert result.redeemed_value_cents == 730
    assert result.balance_cents == 730
    assert result.gift.is_redeemed is True
    assert result.gift.redeemed_at is not None

    redemption = (
        await db.execute(select(Transaction).where(Transaction.type == 'gift_redemption'))
    ).scalar_one()
    assert redemption.user_id == bob_id
    assert redemption.amount_cents == 730


async def test_redeem_twice_is_refused(db, alice_id, bob_id, catalog):
    sent = await gift_service.send_gift(db, alice_id, bob_id, catalog.rose_id)
    gift_id = sent.gift.id
    await gift_service.redeem_gift(db, bob_id, gift_id)

    with pytest.raises(AlreadyRedeemedError):
        await gift_service.redeem_gift(db, bob_id, gift_id)

    assert (await balance_service.get_balance(db, bob_id)).balance_cents == 730


async def test_only_the_recipient_can_redeem(db, alice_id, bob_id, catalog):
    sent = await gift_service.send_gift(db, alice_id, bob_id, catalog.rose_id)
    gift_id = sent.gift.id

    with pytest.raises(NotFoundError):
        await gift_service.redeem_gift(db, alice_id, gift_id)


async def test_redeem_without_recorded_price(db, alice_id, bob_id, catalog):
    gift = await create_user_gift(db, alice_id, bob_id, catalog.rose_id, None)
    await db.commit()
    gift_id = gift.id

    with pytest.raises(PriceNotRecordedError):
        await gift_service.redeem_gift(db, bob_id, gift_id)

    assert (await balance_service.get_balance(db, bob_id)).balance_cents == 0


async def test_snapshot_survives_catalog_price_change(db, alice_id, bob_id, catalog):
    sent = await gift_service.send_gift(db, alice_id, bob_id, catalog.rose_id)
    gift_id = sent.gift.id
    await gift_service.update_item(db, catalog.rose_id, {'price_cents': 5000})

    result = await gift_service.redeem_gift(db, bob_id, gift_id)

    assert result.redeemed_value_cents == 730


async def test_inbox_and_read_state(db, alice_id, bob_id, catalog):
    await gift_service.send_gift(db, alice_id, bob_id, catalog.rose_id, is_anonymous=True)
    second = await gift_service.send_gift(db, alice_id, bob_id, catalog.rose_id, message='Again')

    assert await gift_service.get_unread_gift_count(db, bob_id) == 2

    await gift_service.mark_gift_as_read(db, bob_id, second.gift.id)

    assert await gift_service.get_unread_gift_count(db, bob_id) == 1
    received = await gift_service.list_received_gifts(db, bob_id)
    assert len(received) == 2
    assert sorted(gift.is_anonymous for gift in received) == [False, True]
    assert len(await gift_service.list_sent_gifts(db, alice_id)) == 2

    with pytest.raises(NotFoundError):
        await gift_service.mark_gift_as_read(db, alice_id, second.gift.id)


async def test_catalog_hides_unavailable_items(db, catalog):
    await gift_service.update_item(db, catalog.diamond_id, {'is_available': False})

    items = await gift_service.list_gift_items(db)

    assert [item.id for item in items] == [catalog.rose_id]
    with pytest.raises(NotFoundError):
        await gift_service.get_gift_item(db, catalog.diamond_id)


async def test_item_validation(db):
    with pytest.raises(ValidationError):
        await gift_service.create_item(db, {'name': 'Free', 'price_cents': 0})
    with pytest.raises(ValidationError):
        await gift_service.create_item(db, {'name': 'Crown', 'price_cents': 100, 'required_tier_level': 'Platinum'})

    item = await gift_service.create_item(
        db, {'name': 'Crown', 'price_cents': 2000, 'currency': 'usd', 'required_tier_level': 'premium'}
    )
    assert item.required_tier_level == 'Premium'
    assert item.currency == 'USD'
