"""Subscription routes for cabinet."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import SubscriptionFeature, SubscriptionPackage, User, UserSubscription
from meetcute.services import subscription_service
from meetcute.services.errors import BillingError

from ..dependencies import get_cabinet_db, get_current_cabinet_user
from ..errors import billing_http_error
from ..schemas.subscription import (
    ActiveSubscriptionResponse,
    FeatureResponse,
    MySubscriptionResponse,
    PackageResponse,
    PurchaseWithBalanceRequest,
    PurchaseWithBalanceResponse,
    UserSubscriptionResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix='/subscription', tags=['Cabinet Subscription'])


def package_to_response(
    package: SubscriptionPackage,
    features: list[SubscriptionFeature] | None = None,
) -> PackageResponse:
    return PackageResponse(
        id=package.id,
        name=package.name,
        description=package.description,
        price_cents=package.price_cents,
        price=package.price,
        currency=package.currency,
        billing_interval=package.billing_interval,
        tier_level=package.tier_level,
        duration_months=package.duration_months,
        is_active=package.is_active,
        features=[FeatureResponse.model_validate(feature) for feature in features or []],
    )


def subscription_to_response(subscription: UserSubscription) -> UserSubscriptionResponse:
    return UserSubscriptionResponse.model_validate(subscription)


@router.get('/packages', response_model=list[PackageResponse])
async def list_packages(db: AsyncSession = Depends(get_cabinet_db)):
    """Active packages with the features of their tier, cheapest first."""
    packages = await subscription_service.list_packages(db)
    return [package_to_response(item.package, item.features) for item in packages]


@router.get('/packages/{package_id}', response_model=PackageResponse)
async def get_package(package_id: int, db: AsyncSession = Depends(get_cabinet_db)):
    try:
        item = await subscription_service.get_package(db, package_id)
    except BillingError as error:
        raise billing_http_error(error) from error
    return package_to_response(item.package, item.features)


@router.get('/me', response_model=MySubscriptionResponse)
async def get_my_subscription(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    current = await subscription_service.get_own_subscription(db, user.id)
    if current is None:
        return MySubscriptionResponse(has_subscription=False, role=user.role)

    return MySubscriptionResponse(
        has_subscription=True,
        role=user.role,
        active=ActiveSubscriptionResponse(
            subscription=subscription_to_response(current.subscription),
            package=package_to_response(current.package, current.features),
        ),
    )


@router.post('/purchase-with-balance', response_model=PurchaseWithBalanceResponse)
async def purchase_with_balance(
    request: PurchaseWithBalanceRequest,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Pay for a package from the site balance and activate it immediately."""
    try:
        result = await subscription_service.purchase_with_balance(db, user.id, request.package_id)
    except BillingError as error:
        raise billing_http_error(error) from error

    return PurchaseWithBalanceResponse(
        subscription=subscription_to_response(result.subscription),
        transaction_id=result.transaction.id,
        balance_cents=result.balance_cents,
        role=user.role,
    )


@router.post('/{subscription_id}/cancel', response_model=UserSubscriptionResponse)
async def cancel_subscription(
    subscription_id: int,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        subscription = await subscription_service.cancel_subscription(db, user.id, subscription_id)
    except BillingError as error:
        raise billing_http_error(error) from error
    return subscription_to_response(subscription)
