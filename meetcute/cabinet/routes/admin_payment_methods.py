"""Admin routes for country payment method configuration in cabinet."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import User
from meetcute.services import payment_method_service
from meetcute.services.errors import BillingError

from ..dependencies import get_cabinet_db, get_current_admin_user
from ..errors import billing_http_error
from ..schemas.payment_methods import CountryResponse


logger = logging.getLogger(__name__)

router = APIRouter(prefix='/admin/payment-methods', tags=['Cabinet Admin Payment Methods'])


# ============ Schemas ============


class CountryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., pattern=r'^[A-Za-z]{2,3}$')


class PaymentMethodTypeCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., pattern=r'^[a-z0-9_]{2,50}$')
    description: str | None = None


class PaymentMethodTypeResponse(BaseModel):
    id: int
    name: str
    code: str
    description: str | None = None

    class Config:
        from_attributes = True


class ConfigurationCreateRequest(BaseModel):
    country_id: int = Field(..., ge=1)
    payment_method_type_id: int = Field(..., ge=1)
    is_active: bool = True
    user_instructions: str | None = None
    configuration_details: dict[str, Any] | None = None


class ConfigurationUpdateRequest(BaseModel):
    is_active: bool | None = None
    user_instructions: str | None = None
    configuration_details: dict[str, Any] | None = None


class ConfigurationResponse(BaseModel):
    id: int
    country_id: int
    payment_method_type_id: int
    is_active: bool
    user_instructions: str | None = None
    configuration_details: dict[str, Any] | None = None

    class Config:
        from_attributes = True


# ============ Routes ============


@router.post('/countries', response_model=CountryResponse, status_code=status.HTTP_201_CREATED)
async def create_country(
    request: CountryCreateRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        country = await payment_method_service.add_country(db, request.name, request.code)
    except BillingError as error:
        raise billing_http_error(error) from error
    return CountryResponse.model_validate(country)


@router.post('/types', response_model=PaymentMethodTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_method_type(
    request: PaymentMethodTypeCreateRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        method_type = await payment_method_service.add_payment_method_type(
            db, request.name, request.code, request.description
        )
    except BillingError as error:
        raise billing_http_error(error) from error
    return PaymentMethodTypeResponse.model_validate(method_type)


@router.post('/configurations', response_model=ConfigurationResponse, status_code=status.HTTP_201_CREATED)
async def create_configuration(
    request: ConfigurationCreateRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Enable a payment method type in a country with its instructions."""
    data = request.model_dump(exclude={'country_id', 'payment_method_type_id'})
    try:
        configuration = await payment_method_service.add_configuration(
            db, request.country_id, request.payment_method_type_id, data
        )
    except BillingError as error:
        raise billing_http_error(error) from error

    logger.info(
        'Admin %s configured payment method type #%s for country #%s',
        admin.id,
        request.payment_method_type_id,
        request.country_id,
    )
    return ConfigurationResponse.model_validate(configuration)


@router.put('/configurations/{configuration_id}', response_model=ConfigurationResponse)
async def update_configuration(
    configuration_id: int,
    request: ConfigurationUpdateRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        configuration = await payment_method_service.edit_configuration(
            db, configuration_id, request.model_dump(exclude_unset=True)
        )
    except BillingError as error:
        raise billing_http_error(error) from error
    return ConfigurationResponse.model_validate(configuration)
