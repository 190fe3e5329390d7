"""Admin routes for subscription packages and tier features in cabinet."""

import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import User
from meetcute.services import subscription_service
from meetcute.services.errors import BillingError

from ..dependencies import get_cabinet_db, get_current_admin_user
from ..errors import billing_http_error
from ..schemas.subscription import FeatureResponse, PackageResponse
from .subscription import package_to_response


logger = logging.getLogger(__name__)

router = APIRouter(prefix='/admin/subscriptions', tags=['Cabinet Admin Subscriptions'])


# ============ Schemas ============


class PackageCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    price_cents: int = Field(..., ge=0)
    currency: str = Field(default='USD', pattern=r'^[A-Za-z]{3}$')
    billing_interval: str = Field(default='monthly', pattern='^(monthly|annually|yearly)$')
    tier_level: str
    duration_months: int | None = Field(default=None, ge=1)
    is_active: bool = True


class PackageUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    price_cents: int | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, pattern=r'^[A-Za-z]{3}$')
    billing_interval: str | None = Field(default=None, pattern='^(monthly|annually|yearly)$')
    tier_level: str | None = None
    duration_months: int | None = Field(default=None, ge=1)
    is_active: bool | None = None


class FeatureCreateRequest(BaseModel):
    tier_level: str
    feature_key: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


# ============ Packages ============


@router.post('/packages', response_model=PackageResponse, status_code=status.HTTP_201_CREATED)
async def create_package(
    request: PackageCreateRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        package = await subscription_service.create_subscription_package(db, request.model_dump())
    except BillingError as error:
        raise billing_http_error(error) from error

    logger.info('Admin %s created subscription package #%s', admin.id, package.id)
    return package_to_response(package)


@router.put('/packages/{package_id}', response_model=PackageResponse)
async def update_package(
    package_id: int,
    request: PackageUpdateRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Partial update: only fields present in the body are changed."""
    try:
        package = await subscription_service.update_subscription_package(
            db, package_id, request.model_dump(exclude_unset=True)
        )
    except BillingError as error:
        raise billing_http_error(error) from error
    return package_to_response(package)


# ============ Features ============


@router.post('/features', response_model=FeatureResponse, status_code=status.HTTP_201_CREATED)
async def create_feature(
    request: FeatureCreateRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        feature = await subscription_service.create_tier_feature(
            db, request.tier_level, request.feature_key, request.name, request.description
        )
    except BillingError as error:
        raise billing_http_error(error) from error
    return FeatureResponse.model_validate(feature)


@router.delete('/features/{feature_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_feature(
    feature_id: int,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        await subscription_service.delete_tier_feature(db, feature_id)
    except BillingError as error:
        raise billing_http_error(error) from error
