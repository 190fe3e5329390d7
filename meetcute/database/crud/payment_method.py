import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from meetcute.database.models import Country, CountryPaymentMethod, PaymentMethodType


logger = logging.getLogger(__name__)


CONFIGURATION_UPDATABLE_FIELDS = ('is_active', 'user_instructions', 'configuration_details')


async def get_countries(db: AsyncSession) -> list[Country]:
    result = await db.execute(select(Country).order_by(Country.name.asc()))
    return list(result.scalars().all())


async def get_country_by_id(db: AsyncSession, country_id: int) -> Country | None:
    result = await db.execute(select(Country).where(Country.id == country_id))
    return result.scalar_one_or_none()


async def create_country(db: AsyncSession, name: str, code: str) -> Country:
    country = Country(name=name, code=code.strip().upper())
    db.add(country)
    await db.flush()
    return country


async def get_payment_method_type_by_id(db: AsyncSession, type_id: int) -> PaymentMethodType | None:
    result = await db.execute(select(PaymentMethodType).where(PaymentMethodType.id == type_id))
    return result.scalar_one_or_none()


async def create_payment_method_type(
    db: AsyncSession,
    name: str,
    code: str,
    description: str | None = None,
) -> PaymentMethodType:
    method_type = PaymentMethodType(name=name, code=code.strip().lower(), description=description)
    db.add(method_type)
    await db.flush()
    return method_type


async def get_configuration_by_id(db: AsyncSession, configuration_id: int) -> CountryPaymentMethod | None:
    result = await db.execute(
        select(CountryPaymentMethod)
        .options(selectinload(CountryPaymentMethod.payment_method_type))
        .where(CountryPaymentMethod.id == configuration_id)
    )
    return result.scalar_one_or_none()


async def create_configuration(
    db: AsyncSession,
    country_id: int,
    payment_method_type_id: int,
    data: dict,
) -> CountryPaymentMethod:
    configuration = CountryPaymentMethod(
        country_id=country_id,
        payment_method_type_id=payment_method_type_id,
        **{key: data[key] for key in CONFIGURATION_UPDATABLE_FIELDS if key in data},
    )
    db.add(configuration)
    await db.flush()
    logger.info(
        '🏦 Payment method type #%s configured for country #%s (active=%s)',
        payment_method_type_id,
        country_id,
        configuration.is_active,
    )
    return configuration


async def update_configuration(
    db: AsyncSession,
    configuration: CountryPaymentMethod,
    data: dict,
) -> CountryPaymentMethod:
    for key in CONFIGURATION_UPDATABLE_FIELDS:
        if key in data:
            setattr(configuration, key, data[key])
    await db.flush()
    return configuration


async def get_country_payment_method_detail(
    db: AsyncSession,
    country_id: int,
    payment_method_type_id: int,
) -> CountryPaymentMethod | None:
    result = await db.execute(
        select(CountryPaymentMethod)
        .options(selectinload(CountryPaymentMethod.payment_method_type))
        .where(
            CountryPaymentMethod.country_id == country_id,
            CountryPaymentMethod.payment_method_type_id == payment_method_type_id,
        )
    )
    return result.scalar_one_or_none()


async def get_active_methods_for_country(db: AsyncSession, country_id: int) -> list[CountryPaymentMethod]:
    result = await db.execute(
        select(CountryPaymentMethod)
        .options(selectinload(CountryPaymentMethod.payment_method_type))
        .where(
            CountryPaymentMethod.country_id == country_id,
            CountryPaymentMethod.is_active.is_(True),
        )
        .order_by(CountryPaymentMethod.id.asc())
    )
    return list(result.scalars().all())
