import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from meetcute.database.models import GiftItem, UserGift


logger = logging.getLogger(__name__)


GIFT_ITEM_UPDATABLE_FIELDS = (
    'name',
    'description',
    'image_url',
    'price_cents',
    'currency',
    'required_tier_level',
    'is_available',
)


async def get_available_gift_items(db: AsyncSession) -> list[GiftItem]:
    result = await db.execute(
        select(GiftItem).where(GiftItem.is_available.is_(True)).order_by(GiftItem.price_cents.asc(), GiftItem.id.asc())
    )
    return list(result.scalars().all())


async def get_gift_item_by_id(db: AsyncSession, item_id: int) -> GiftItem | None:
    result = await db.execute(select(GiftItem).where(GiftItem.id == item_id))
    return result.scalar_one_or_none()


async def create_gift_item(db: AsyncSession, data: dict) -> GiftItem:
    item = GiftItem(**{key: data[key] for key in GIFT_ITEM_UPDATABLE_FIELDS if key in data})
    db.add(item)
    await db.flush()
    logger.info('🎁 Created gift item #%s %s', item.id, item.name)
    return item


async def update_gift_item(db: AsyncSession, item: GiftItem, data: dict) -> GiftItem:
    for key in GIFT_ITEM_UPDATABLE_FIELDS:
        if key in data:
            setattr(item, key, data[key])
    await db.flush()
    return item


async def create_user_gift(
    db: AsyncSession,
    sender_id: int,
    recipient_id: int,
    gift_item_id: int,
    original_purchase_price_cents: int,
    *,
    message: str | None = None,
    is_anonymous: bool = False,
    transaction_id: int | None = None,
) -> UserGift:
    gift = UserGift(
        sender_id=sender_id,
        recipient_id=recipient_id,
        gift_item_id=gift_item_id,
        original_purchase_price_cents=original_purchase_price_cents,
        message=message,
        is_anonymous=is_anonymous,
        is_read=False,
        is_redeemed=False,
        transaction_id=transaction_id,
    )
    db.add(gift)
    await db.flush()
    return gift


async def get_recipient_gift(
    db: AsyncSession,
    gift_id: int,
    recipient_id: int,
    *,
    for_update: bool = False,
) -> UserGift | None:
    query = select(UserGift).where(UserGift.id == gift_id, UserGift.recipient_id == recipient_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_received_gifts(db: AsyncSession, recipient_id: int) -> list[UserGift]:
    result = await db.execute(
        select(UserGift)
        .options(selectinload(UserGift.gift_item), selectinload(UserGift.sender))
        .where(UserGift.recipient_id == recipient_id)
        .order_by(UserGift.created_at.desc(), UserGift.id.desc())
    )
    return list(result.scalars().all())


async def get_sent_gifts(db: AsyncSession, sender_id: int) -> list[UserGift]:
    result = await db.execute(
        select(UserGift)
        .options(selectinload(UserGift.gift_item), selectinload(UserGift.recipient))
        .where(UserGift.sender_id == sender_id)
        .order_by(UserGift.created_at.desc(), UserGift.id.desc())
    )
    return list(result.scalars().all())


async def count_unread_gifts(db: AsyncSession, recipient_id: int) -> int:
    result = await db.execute(
        select(func.count(UserGift.id)).where(UserGift.recipient_id == recipient_id, UserGift.is_read.is_(False))
    )
    return result.scalar() or 0
