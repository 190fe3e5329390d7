"""Country payment methods available for manual payments."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import CountryPaymentMethod, User
from meetcute.services import payment_method_service
from meetcute.services.errors import BillingError

from ..dependencies import get_cabinet_db, get_current_cabinet_user
from ..errors import billing_http_error
from ..schemas.payment_methods import CountryPaymentMethodResponse, CountryResponse


router = APIRouter(prefix='/payment-methods', tags=['Cabinet Payment Methods'])


def country_method_to_response(method: CountryPaymentMethod) -> CountryPaymentMethodResponse:
    method_type = method.payment_method_type
    return CountryPaymentMethodResponse(
        id=method.id,
        payment_method_type_id=method.payment_method_type_id,
        name=method_type.name,
        code=method_type.code,
        user_instructions=method.user_instructions,
        configuration_details=method.configuration_details,
    )


@router.get('/countries', response_model=list[CountryResponse])
async def list_countries(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    countries = await payment_method_service.list_countries(db)
    return [CountryResponse.model_validate(country) for country in countries]


@router.get('/countries/{country_id}', response_model=list[CountryPaymentMethodResponse])
async def list_country_methods(
    country_id: int,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Active payment methods configured for a country."""
    try:
        methods = await payment_method_service.list_country_methods(db, country_id)
    except BillingError as error:
        raise billing_http_error(error) from error
    return [country_method_to_response(method) for method in methods]
