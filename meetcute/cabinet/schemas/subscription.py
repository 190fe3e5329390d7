"""Subscription schemas for cabinet."""

from datetime import datetime

from pydantic import BaseModel, Field


class FeatureResponse(BaseModel):
    id: int
    feature_key: str
    name: str
    description: str | None = None
    tier_level: str

    class Config:
        from_attributes = True


class PackageResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    price_cents: int
    price: float
    currency: str
    billing_interval: str
    tier_level: str
    duration_months: int | None = None
    is_active: bool
    features: list[FeatureResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class UserSubscriptionResponse(BaseModel):
    id: int
    package_id: int
    status: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    auto_renew: bool
    payment_method_id: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class ActiveSubscriptionResponse(BaseModel):
    subscription: UserSubscriptionResponse
    package: PackageResponse


class MySubscriptionResponse(BaseModel):
    has_subscription: bool
    role: str
    active: ActiveSubscriptionResponse | None = None


class PurchaseWithBalanceRequest(BaseModel):
    package_id: int = Field(..., ge=1)


class PurchaseWithBalanceResponse(BaseModel):
    subscription: UserSubscriptionResponse
    transaction_id: int
    balance_cents: int
    role: str
