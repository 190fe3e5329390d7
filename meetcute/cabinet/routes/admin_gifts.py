"""Admin routes for the gift catalog in cabinet."""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import User
from meetcute.services import gift_service
from meetcute.services.errors import BillingError

from ..dependencies import get_cabinet_db, get_current_admin_user
from ..errors import billing_http_error
from ..schemas.gifts import GiftItemResponse
from .gifts import gift_item_to_response


router = APIRouter(prefix='/admin/gifts', tags=['Cabinet Admin Gifts'])


class GiftItemCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = Field(default=None, max_length=500)
    price_cents: int = Field(..., ge=1)
    currency: str = Field(default='USD', pattern=r'^[A-Za-z]{3}$')
    required_tier_level: str | None = None
    is_available: bool = True


class GiftItemUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = Field(default=None, max_length=500)
    price_cents: int | None = Field(default=None, ge=1)
    currency: str | None = Field(default=None, pattern=r'^[A-Za-z]{3}$')
    # Null removes the tier requirement
    required_tier_level: str | None = None
    is_available: bool | None = None


@router.post('/items', response_model=GiftItemResponse, status_code=status.HTTP_201_CREATED)
async def create_gift_item(
    request: GiftItemCreateRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        item = await gift_service.create_item(db, request.model_dump())
    except BillingError as error:
        raise billing_http_error(error) from error
    return gift_item_to_response(item)


@router.put('/items/{item_id}', response_model=GiftItemResponse)
async def update_gift_item(
    item_id: int,
    request: GiftItemUpdateRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        item = await gift_service.update_item(db, item_id, request.model_dump(exclude_unset=True))
    except BillingError as error:
        raise billing_http_error(error) from error
    return gift_item_to_response(item)
