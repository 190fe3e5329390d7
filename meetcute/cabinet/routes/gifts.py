"""Virtual gift routes for cabinet."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import GiftItem, User, UserGift
from meetcute.services import gift_service
from meetcute.services.errors import BillingError
from meetcute.services.notification_service import notification_service
from meetcute.utils.money import format_amount, minor_to_major

from ..dependencies import get_cabinet_db, get_current_cabinet_user
from ..errors import billing_http_error
from ..schemas.gifts import (
    GiftItemResponse,
    GiftParty,
    RedeemGiftResponse,
    SendGiftRequest,
    SendGiftResponse,
    UnreadCountResponse,
    UserGiftResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix='/gifts', tags=['Cabinet Gifts'])


def gift_item_to_response(item: GiftItem) -> GiftItemResponse:
    return GiftItemResponse(
        id=item.id,
        name=item.name,
        description=item.description,
        image_url=item.image_url,
        price_cents=item.price_cents,
        price=item.price,
        currency=item.currency,
        required_tier_level=item.required_tier_level,
        is_available=item.is_available,
    )


def _party(user: User | None) -> GiftParty | None:
    if user is None:
        return None
    return GiftParty(id=user.id, display_name=user.display_name)


def gift_to_response(gift: UserGift, *, sender: User | None = None, recipient: User | None = None) -> UserGiftResponse:
    return UserGiftResponse(
        id=gift.id,
        gift_item=gift_item_to_response(gift.gift_item) if gift.gift_item else None,
        sender=_party(sender),
        recipient=_party(recipient),
        message=gift.message,
        is_anonymous=gift.is_anonymous,
        is_read=gift.is_read,
        original_purchase_price_cents=gift.original_purchase_price_cents,
        is_redeemed=gift.is_redeemed,
        redeemed_value_cents=gift.redeemed_value_cents,
        redeemed_at=gift.redeemed_at,
        created_at=gift.created_at,
    )


@router.get('/items', response_model=list[GiftItemResponse])
async def list_gift_items(db: AsyncSession = Depends(get_cabinet_db)):
    items = await gift_service.list_gift_items(db)
    return [gift_item_to_response(item) for item in items]


@router.get('/items/{item_id}', response_model=GiftItemResponse)
async def get_gift_item(item_id: int, db: AsyncSession = Depends(get_cabinet_db)):
    try:
        item = await gift_service.get_gift_item(db, item_id)
    except BillingError as error:
        raise billing_http_error(error) from error
    return gift_item_to_response(item)


@router.post('/send', response_model=SendGiftResponse, status_code=status.HTTP_201_CREATED)
async def send_gift(
    request: SendGiftRequest,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Send a gift. With ``use_site_balance`` the price is debited from the sender's balance."""
    try:
        result = await gift_service.send_gift(
            db,
            user.id,
            request.recipient_id,
            request.gift_item_id,
            message=request.message,
            is_anonymous=request.is_anonymous,
            use_site_balance=request.use_site_balance,
        )
    except BillingError as error:
        raise billing_http_error(error) from error

    await notification_service.notify_gift_received(result.gift, result.gift_name)

    return SendGiftResponse(
        gift_id=result.gift.id,
        transaction_id=result.transaction.id,
        balance_cents=result.balance_cents,
    )


@router.get('/received', response_model=list[UserGiftResponse])
async def list_received_gifts(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Gifts received by the user. Anonymous senders are hidden."""
    gifts = await gift_service.list_received_gifts(db, user.id)
    return [gift_to_response(gift, sender=None if gift.is_anonymous else gift.sender) for gift in gifts]


@router.get('/sent', response_model=list[UserGiftResponse])
async def list_sent_gifts(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    gifts = await gift_service.list_sent_gifts(db, user.id)
    return [gift_to_response(gift, recipient=gift.recipient) for gift in gifts]


@router.get('/unread-count', response_model=UnreadCountResponse)
async def get_unread_count(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    count = await gift_service.get_unread_gift_count(db, user.id)
    return UnreadCountResponse(count=count)


@router.put('/{gift_id}/read')
async def mark_gift_read(
    gift_id: int,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        await gift_service.mark_gift_as_read(db, user.id, gift_id)
    except BillingError as error:
        raise billing_http_error(error) from error
    return {'success': True, 'gift_id': gift_id}


@router.post('/{gift_id}/redeem', response_model=RedeemGiftResponse)
async def redeem_gift(
    gift_id: int,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Convert a received gift into site balance at the configured redemption rate."""
    try:
        result = await gift_service.redeem_gift(db, user.id, gift_id)
    except BillingError as error:
        raise billing_http_error(error) from error

    return RedeemGiftResponse(
        gift_id=result.gift.id,
        redeemed_value_cents=result.redeemed_value_cents,
        redeemed_value=float(minor_to_major(result.redeemed_value_cents)),
        balance_cents=result.balance_cents,
        balance_display=format_amount(result.balance_cents),
    )
