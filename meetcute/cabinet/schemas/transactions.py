"""Manual-payment transaction schemas for cabinet."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class TransactionInitiateRequest(BaseModel):
    """Start a purchase paid outside the site."""

    country_id: int = Field(..., ge=1)
    payment_method_type_id: int = Field(..., ge=1)
    item_category: str = Field(..., description='subscription, gift, boost or balance_topup')
    item_id: int | None = Field(default=None, ge=1, description='Package, gift item or boost package id')
    amount_cents: int | None = Field(default=None, ge=1, description='Only for balance_topup')
    recipient_id: int | None = Field(default=None, ge=1, description='Only for gift')
    message: str | None = Field(default=None, max_length=500)
    is_anonymous: bool = False


class SubmitReferenceRequest(BaseModel):
    reference: str = Field(..., min_length=1, max_length=255)


class TransactionResponse(BaseModel):
    id: int
    type: str
    item_category: str | None = None
    payable_item_id: int | None = None
    amount_cents: int
    amount: float
    currency: str
    status: str
    payment_country_id: int | None = None
    payment_method_type_id: int | None = None
    user_provided_reference: str | None = None
    admin_notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class TransactionInitiateResponse(BaseModel):
    transaction: TransactionResponse
    payment_instructions: str | None = None
    payment_configuration_details: dict[str, Any] | None = None


class TransactionListResponse(BaseModel):
    """Paginated transaction list."""

    items: list[TransactionResponse]
    total: int
    limit: int
    offset: int
