import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from meetcute.config import settings
from meetcute.database.models import Base


logger = logging.getLogger(__name__)


DATABASE_URL = settings.get_database_url()

_engine_kwargs: dict = {'echo': settings.DATABASE_ECHO, 'future': True}
if settings.is_postgresql():
    _engine_kwargs.update(pool_size=10, max_overflow=20, pool_pre_ping=True)

engine = create_async_engine(DATABASE_URL, **_engine_kwargs)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    logger.info('🗄️ Creating database tables (%s)', 'postgresql' if settings.is_postgresql() else 'sqlite')
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
    logger.info('🗄️ Database connections closed')
