"""Profile boost routes for cabinet."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import User
from meetcute.services import boost_service
from meetcute.services.errors import BillingError

from ..dependencies import get_cabinet_db, get_current_cabinet_user, require_active_subscription, require_feature
from ..errors import billing_http_error
from ..schemas.boosts import BoostPackageResponse, BoostResponse, BoostStatusResponse


logger = logging.getLogger(__name__)

router = APIRouter(prefix='/boosts', tags=['Cabinet Boosts'])


@router.get('/packages', response_model=list[BoostPackageResponse])
async def list_boost_packages(db: AsyncSession = Depends(get_cabinet_db)):
    packages = await boost_service.list_boost_packages(db)
    return [BoostPackageResponse.model_validate(package) for package in packages]


@router.get('/status', response_model=BoostStatusResponse)
async def get_boost_status(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    boost = await boost_service.get_boost_status(db, user.id)
    if boost is None:
        return BoostStatusResponse(is_boosted=False)
    return BoostStatusResponse(is_boosted=True, boost=BoostResponse.model_validate(boost))


@router.post(
    '/activate',
    response_model=BoostResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_active_subscription)],
)
async def activate_boost(
    user: User = Depends(require_feature(boost_service.PROFILE_BOOST_FEATURE)),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Start the boost included in the user's tier."""
    try:
        boost = await boost_service.activate_included_boost(db, user.id)
    except BillingError as error:
        raise billing_http_error(error) from error
    return BoostResponse.model_validate(boost)
