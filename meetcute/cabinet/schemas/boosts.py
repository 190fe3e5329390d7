from datetime import datetime

from pydantic import BaseModel


class BoostPackageResponse(BaseModel):
    id: int
    name: str
    duration_minutes: int
    price_cents: int
    currency: str

    class Config:
        from_attributes = True


class BoostResponse(BaseModel):
    id: int
    source: str
    started_at: datetime
    expires_at: datetime

    class Config:
        from_attributes = True


class BoostStatusResponse(BaseModel):
    is_boosted: bool
    boost: BoostResponse | None = None
