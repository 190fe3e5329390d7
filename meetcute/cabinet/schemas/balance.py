"""Balance and withdrawal schemas for cabinet."""

from datetime import datetime

from pydantic import BaseModel, Field


class BalanceResponse(BaseModel):
    """User balance data."""

    balance_cents: int
    balance: float
    balance_display: str
    currency: str = 'USD'


class WithdrawalCreateRequest(BaseModel):
    """Request to cash out part of the balance."""

    amount_cents: int = Field(..., ge=1, description='Amount in cents')
    payment_details: str = Field(..., min_length=1, max_length=2000, description='Where to send the money')


class WithdrawalResponse(BaseModel):
    id: int
    amount_cents: int
    amount: float
    currency: str
    status: str
    user_payment_details: str
    admin_notes: str | None = None
    processed_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class WithdrawalCreateResponse(BaseModel):
    request: WithdrawalResponse
    balance_cents: int
    balance_display: str
