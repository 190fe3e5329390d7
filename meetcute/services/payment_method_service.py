"""Country payment method configuration used by manual payments."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.crud.payment_method import (
    create_configuration,
    create_country,
    create_payment_method_type,
    get_active_methods_for_country,
    get_configuration_by_id,
    get_countries,
    get_country_by_id,
    get_country_payment_method_detail,
    get_payment_method_type_by_id,
    update_configuration,
)
from meetcute.database.models import Country, CountryPaymentMethod, PaymentMethodType
from meetcute.services.errors import NotFoundError, PaymentMethodUnavailableError, ValidationError
from meetcute.services.unit_of_work import unit_of_work


logger = logging.getLogger(__name__)


async def list_countries(db: AsyncSession) -> list[Country]:
    return await get_countries(db)


async def list_country_methods(db: AsyncSession, country_id: int) -> list[CountryPaymentMethod]:
    if await get_country_by_id(db, country_id) is None:
        raise NotFoundError('Country not found')
    return await get_active_methods_for_country(db, country_id)


async def require_active_method(
    db: AsyncSession,
    country_id: int,
    payment_method_type_id: int,
) -> CountryPaymentMethod:
    """Configuration of a payment method type in a country, or PaymentMethodUnavailableError."""
    detail = await get_country_payment_method_detail(db, country_id, payment_method_type_id)
    if detail is None or not detail.is_active:
        raise PaymentMethodUnavailableError()
    return detail


async def add_country(db: AsyncSession, name: str, code: str) -> Country:
    if not (name or '').strip() or not (code or '').strip():
        raise ValidationError('Country name and code are required')
    async with unit_of_work(db, f'create country {code}'):
        country = await create_country(db, name.strip(), code)
    return country


async def add_payment_method_type(
    db: AsyncSession,
    name: str,
    code: str,
    description: str | None = None,
) -> PaymentMethodType:
    if not (name or '').strip() or not (code or '').strip():
        raise ValidationError('Payment method name and code are required')
    async with unit_of_work(db, f'create payment method type {code}'):
        method_type = await create_payment_method_type(db, name.strip(), code, description)
    return method_type


async def add_configuration(
    db: AsyncSession,
    country_id: int,
    payment_method_type_id: int,
    data: dict,
) -> CountryPaymentMethod:
    async with unit_of_work(db, 'configure country payment method'):
        if await get_country_by_id(db, country_id) is None:
            raise NotFoundError('Country not found')
        if await get_payment_method_type_by_id(db, payment_method_type_id) is None:
            raise NotFoundError('Payment method type not found')
        configuration = await create_configuration(db, country_id, payment_method_type_id, data)
    return await get_configuration_by_id(db, configuration.id)


async def edit_configuration(db: AsyncSession, configuration_id: int, data: dict) -> CountryPaymentMethod:
    async with unit_of_work(db, f'update payment configuration #{configuration_id}'):
        configuration = await get_configuration_by_id(db, configuration_id)
        if configuration is None:
            raise NotFoundError('Payment configuration not found')
        await update_configuration(db, configuration, data)
    logger.info('🏦 Payment configuration #%s updated: %s', configuration_id, sorted(data))
    return configuration
