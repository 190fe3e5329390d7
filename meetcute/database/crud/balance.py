import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.config import settings
from meetcute.database.models import BalanceAccount


logger = logging.getLogger(__name__)


async def get_balance_account(db: AsyncSession, user_id: int, *, for_update: bool = False) -> BalanceAccount | None:
    query = select(BalanceAccount).where(BalanceAccount.user_id == user_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_or_create_balance_account(
    db: AsyncSession,
    user_id: int,
    *,
    for_update: bool = False,
) -> BalanceAccount:
    account = await get_balance_account(db, user_id, for_update=for_update)
    if account is not None:
        return account

    account = BalanceAccount(user_id=user_id, balance_cents=0, currency=settings.get_default_currency())
    db.add(account)
    # A concurrent creator makes this flush fail with IntegrityError
    await db.flush()
    logger.info('💼 Opened balance account for user #%s', user_id)

    if for_update:
        return await get_balance_account(db, user_id, for_update=True)
    return account
