from typing import Any

from pydantic import BaseModel


class CountryResponse(BaseModel):
    id: int
    name: str
    code: str

    class Config:
        from_attributes = True


class CountryPaymentMethodResponse(BaseModel):
    """Payment method a user can pick for a country."""

    id: int
    payment_method_type_id: int
    name: str
    code: str
    user_instructions: str | None = None
    configuration_details: dict[str, Any] | None = None
