"""Shared fixtures: a throwaway SQLite database per test plus a small catalog."""

import os


os.environ.setdefault('DATABASE_URL', 'sqlite+aiosqlite:///:memory:')
os.environ.setdefault('CABINET_JWT_SECRET', 'test-secret')
os.environ.setdefault('LOG_LEVEL', 'DEBUG')

from dataclasses import dataclass

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from meetcute.database.crud.boost import create_boost_package
from meetcute.database.crud.gift import create_gift_item
from meetcute.database.crud.payment_method import (
    create_configuration,
    create_country,
    create_payment_method_type,
)
from meetcute.database.crud.subscription import create_feature, create_package
from meetcute.database.crud.user import create_user_no_commit
from meetcute.database.models import Base, UserRole
from meetcute.services.balance_service import credit_balance


@dataclass
class Catalog:
    basic_package_id: int
    premium_package_id: int
    elite_package_id: int
    country_id: int
    bank_transfer_id: int
    crypto_id: int
    rose_id: int
    diamond_id: int
    boost_package_id: int


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f'sqlite+aiosqlite:///{tmp_path / "meetcute-test.db"}')
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def _make_user(session_factory, email: str, role: UserRole = UserRole.USER) -> int:
    async with session_factory() as session:
        user = await create_user_no_commit(session, email, email.split('@')[0].title(), role)
        await session.commit()
        return user.id


@pytest_asyncio.fixture
async def alice_id(session_factory) -> int:
    return await _make_user(session_factory, 'alice@example.com')


@pytest_asyncio.fixture
async def bob_id(session_factory) -> int:
    return await _make_user(session_factory, 'bob@example.com')


@pytest_asyncio.fixture
async def admin_id(session_factory) -> int:
    return await _make_user(session_factory, 'admin@example.com', UserRole.ADMIN)


@pytest.fixture
def fund(session_factory):
    """Credit a user's balance outside of the session under test."""

    async def _fund(user_id: int, amount_cents: int) -> None:
        async with session_factory() as session:
            await credit_balance(session, user_id, amount_cents, 'test funding')
            await session.commit()

    return _fund


@pytest_asyncio.fixture
async def catalog(session_factory) -> Catalog:
    async with session_factory() as session:
        basic = await create_package(
            session,
            {'name': 'Basic', 'price_cents': 1000, 'currency': 'USD', 'billing_interval': 'monthly', 'tier_level': 'Basic'},
        )
        premium = await create_package(
            session,
            {
                'name': 'Premium Monthly',
                'price_cents': 2500,
                'currency': 'USD',
                'billing_interval': 'monthly',
                'tier_level': 'Premium',
            },
        )
        elite = await create_package(
            session,
            {'name': 'Elite Yearly', 'price_cents': 9900, 'currency': 'USD', 'billing_interval': 'annually', 'tier_level': 'Elite'},
        )
        await create_feature(session, 'Premium', 'profile_boost', 'Profile boost')
        await create_feature(session, 'Elite', 'profile_boost', 'Profile boost')
        await create_feature(session, 'Elite', 'see_who_liked', 'See who liked you')

        country = await create_country(session, 'Nigeria', 'ng')
        bank_transfer = await create_payment_method_type(session, 'Bank Transfer', 'bank_transfer')
        crypto = await create_payment_method_type(session, 'Crypto', 'crypto')
        await create_configuration(
            session,
            country.id,
            bank_transfer.id,
            {
                'is_active': True,
                'user_instructions': 'Transfer to account 0123456789 and use your email as the narration.',
                'configuration_details': {'bank_name': 'First Bank', 'account_number': '0123456789'},
            },
        )
        await create_configuration(session, country.id, crypto.id, {'is_active': False})

        rose = await create_gift_item(session, {'name': 'Rose', 'price_cents': 1000, 'currency': 'USD'})
        diamond = await create_gift_item(
            session,
            {'name': 'Diamond', 'price_cents': 5000, 'currency': 'USD', 'required_tier_level': 'Elite'},
        )
        boost = await create_boost_package(session, '1 hour boost', 60, 300, 'USD')
        await session.commit()

        return Catalog(
            basic_package_id=basic.id,
            premium_package_id=premium.id,
            elite_package_id=elite.id,
            country_id=country.id,
            bank_transfer_id=bank_transfer.id,
            crypto_id=crypto.id,
            rose_id=rose.id,
            diamond_id=diamond.id,
            boost_package_id=boost.id,
        )
