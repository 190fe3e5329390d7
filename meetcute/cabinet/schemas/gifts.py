"""Gift schemas for cabinet."""

from datetime import datetime

from pydantic import BaseModel, Field


class GiftItemResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    image_url: str | None = None
    price_cents: int
    price: float
    currency: str
    required_tier_level: str | None = None
    is_available: bool

    class Config:
        from_attributes = True


class SendGiftRequest(BaseModel):
    recipient_id: int = Field(..., ge=1)
    gift_item_id: int = Field(..., ge=1)
    message: str | None = Field(default=None, max_length=500)
    is_anonymous: bool = False
    use_site_balance: bool = False


class GiftParty(BaseModel):
    id: int
    display_name: str | None = None


class UserGiftResponse(BaseModel):
    id: int
    gift_item: GiftItemResponse | None = None
    sender: GiftParty | None = None
    recipient: GiftParty | None = None
    message: str | None = None
    is_anonymous: bool
    is_read: bool
    original_purchase_price_cents: int | None = None
    is_redeemed: bool
    redeemed_value_cents: int | None = None
    redeemed_at: datetime | None = None
    created_at: datetime


class SendGiftResponse(BaseModel):
    gift_id: int
    transaction_id: int
    balance_cents: int | None = None


class UnreadCountResponse(BaseModel):
    count: int


class RedeemGiftResponse(BaseModel):
    gift_id: int
    redeemed_value_cents: int
    redeemed_value: float
    balance_cents: int
    balance_display: str
