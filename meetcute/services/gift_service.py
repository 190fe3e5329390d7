import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.config import settings
from meetcute.database.crud.gift import (
    count_unread_gifts,
    create_gift_item,
    create_user_gift,
    get_available_gift_items,
    get_gift_item_by_id,
    get_received_gifts,
    get_recipient_gift,
    get_sent_gifts,
    update_gift_item,
)
from meetcute.database.crud.transaction import create_transaction
from meetcute.database.crud.user import get_user_by_id
from meetcute.database.models import (
    GiftItem,
    ItemCategory,
    TierLevel,
    Transaction,
    TransactionStatus,
    TransactionType,
    UserGift,
)
from meetcute.services.balance_service import credit_balance, debit_balance
from meetcute.services.errors import (
    AlreadyRedeemedError,
    InsufficientTierError,
    NotFoundError,
    PriceNotRecordedError,
    ValidationError,
)
from meetcute.services.tier_service import parse_tier, resolve_user_tier
from meetcute.services.unit_of_work import unit_of_work
from meetcute.utils.money import apply_rate, format_amount, normalize_currency
from meetcute.utils.timezone import utcnow


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SendGiftResult:
    gift: UserGift
    transaction: Transaction
    balance_cents: int | None = None
    gift_name: str | None = None


@dataclass(slots=True)
class RedeemGiftResult:
    gift: UserGift
    redeemed_value_cents: int
    balance_cents: int


def check_tier_requirement(item: GiftItem, sender_tier: TierLevel) -> None:
    """Raise InsufficientTierError unless ``sender_tier`` ranks at or above the item's requirement."""
    required_rank = TierLevel.rank_of(item.required_tier_level)
    if sender_tier.rank < required_rank:
        required = TierLevel.parse(item.required_tier_level)
        raise InsufficientTierError(required_tier=required.value, actual_tier=sender_tier.value)


async def get_sendable_gift_item(db: AsyncSession, item_id: int) -> GiftItem:
    item = await get_gift_item_by_id(db, item_id)
    if item is None or not item.is_available:
        raise NotFoundError('Gift item not found or not available')
    return item


async def validate_recipient(db: AsyncSession, sender_id: int, recipient_id: int) -> None:
    if recipient_id == sender_id:
        raise ValidationError('You cannot send a gift to yourself')
    recipient = await get_user_by_id(db, recipient_id)
    if recipient is None or not recipient.is_active:
        raise NotFoundError('Recipient not found')


def _clean_item_data(data: dict, *, partial: bool) -> dict:
    cleaned = dict(data)
    if 'required_tier_level' in cleaned:
        tier = parse_tier(cleaned['required_tier_level'], allow_none=True)
        cleaned['required_tier_level'] = tier.value if tier else None
    if 'price_cents' in cleaned or not partial:
        price = cleaned.get('price_cents')
        if price is None or price <= 0:
            raise ValidationError('Gift price must be greater than zero')
    if 'name' in cleaned or not partial:
        if not (cleaned.get('name') or '').strip():
            raise ValidationError('Gift name is required')
    if 'currency' in cleaned:
        cleaned['currency'] = normalize_currency(cleaned['currency'])
    return cleaned


# ---------- catalog ----------


async def list_gift_items(db: AsyncSession) -> list[GiftItem]:
    return await get_available_gift_items(db)


async def get_gift_item(db: AsyncSession, item_id: int) -> GiftItem:
    return await get_sendable_gift_item(db, item_id)


async def create_item(db: AsyncSession, data: dict) -> GiftItem:
    cleaned = _clean_item_data(data, partial=False)
    async with unit_of_work(db, 'create gift item'):
        item = await create_gift_item(db, cleaned)
    return item


async def update_item(db: AsyncSession, item_id: int, data: dict) -> GiftItem:
    cleaned = _clean_item_data(data, partial=True)
    async with unit_of_work(db, f'update gift item #{item_id}'):
        item = await get_gift_item_by_id(db, item_id)
        if item is None:
            raise NotFoundError('Gift item not found')
        await update_gift_item(db, item, cleaned)
    return item


# ---------- sending ----------


async def send_gift(
    db: AsyncSession,
    sender_id: int,
    recipient_id: int,
    gift_item_id: int,
    *,
    message: str | None = None,
    is_anonymous: bool = False,
    use_site_balance: bool = False,
) -> SendGiftResult:
    async with unit_of_work(db, f'send gift item #{gift_item_id}'):
        await validate_recipient(db, sender_id, recipient_id)
        sender_tier = await resolve_user_tier(db, sender_id)
        item = await get_sendable_gift_item(db, gift_item_id)
        check_tier_requirement(item, sender_tier)

        gift = await create_user_gift(
            db,
            sender_id,
            recipient_id,
            item.id,
            item.price_cents,
            message=message,
            is_anonymous=is_anonymous,
        )

        balance_cents = None
        if use_site_balance:
            account = await debit_balance(db, sender_id, item.price_cents, f'gift #{gift.id}')
            balance_cents = account.balance_cents
            transaction_type = TransactionType.GIFT_SITE_BALANCE
        else:
            # External payment is taken as already authorized upstream
            transaction_type = TransactionType.GIFT

        transaction = await create_transaction(
            db,
            sender_id,
            item.price_cents,
            item.currency,
            type=transaction_type,
            status=TransactionStatus.COMPLETED,
            item_category=ItemCategory.GIFT,
            payable_item_id=item.id,
            item_metadata={'user_gift_id': gift.id, 'recipient_id': recipient_id},
        )
        gift.transaction_id = transaction.id
        await db.flush()

    logger.info(
        '🎁 Gift #%s (%s) sent by user #%s to user #%s via %s',
        gift.id,
        item.name,
        sender_id,
        recipient_id,
        transaction_type.value,
    )
    return SendGiftResult(gift=gift, transaction=transaction, balance_cents=balance_cents, gift_name=item.name)


# ---------- inbox ----------


async def list_received_gifts(db: AsyncSession, recipient_id: int) -> list[UserGift]:
    return await get_received_gifts(db, recipient_id)


async def list_sent_gifts(db: AsyncSession, sender_id: int) -> list[UserGift]:
    return await get_sent_gifts(db, sender_id)


async def mark_gift_as_read(db: AsyncSession, recipient_id: int, gift_id: int) -> UserGift:
    async with unit_of_work(db, f'mark gift #{gift_id} read'):
        gift = await get_recipient_gift(db, gift_id, recipient_id)
        if gift is None:
            raise NotFoundError('Gift not found')
        gift.is_read = True
        await db.flush()
    return gift


async def get_unread_gift_count(db: AsyncSession, recipient_id: int) -> int:
    return await count_unread_gifts(db, recipient_id)


# ---------- redemption ----------


async def redeem_gift(db: AsyncSession, recipient_id: int, gift_id: int) -> RedeemGiftResult:
    rate = settings.get_gift_redemption_rate()

    async with unit_of_work(db, f'redeem gift #{gift_id}'):
        gift = await get_recipient_gift(db, gift_id, recipient_id, for_update=True)
        if gift is None:
            raise NotFoundError('Gift not found')
        if gift.is_redeemed:
            raise AlreadyRedeemedError('Gift has already been redeemed')
        if gift.original_purchase_price_cents is None:
            raise PriceNotRecordedError('Gift cannot be redeemed because its purchase price was not recorded')

        redeemed_value = apply_rate(gift.original_purchase_price_cents, rate)

        gift.is_redeemed = True
        gift.redeemed_value_cents = redeemed_value
        gift.redeemed_at = utcnow()
        await db.flush()

        account = await credit_balance(db, recipient_id, redeemed_value, f'gift #{gift.id} redemption')
        balance_cents = account.balance_cents
        await create_transaction(
            db,
            recipient_id,
            redeemed_value,
            settings.get_default_currency(),
            type=TransactionType.GIFT_REDEMPTION,
            status=TransactionStatus.COMPLETED,
            item_category=ItemCategory.GIFT,
            payable_item_id=gift.gift_item_id,
            item_metadata={'user_gift_id': gift.id},
        )

    logger.info(
        '🔄 Gift #%s redeemed by user #%s for %s (rate %s)',
        gift_id,
        recipient_id,
        format_amount(redeemed_value),
        rate,
    )
    return RedeemGiftResult(gift=gift, redeemed_value_cents=redeemed_value, balance_cents=balance_cents)
