"""Site-currency balance ledger.

``debit_balance`` and ``credit_balance`` never commit: they lock the account row
and change it inside the caller's unit of work, so a debit and the record it
pays for land together or not at all.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.crud.balance import get_or_create_balance_account
from meetcute.database.models import BalanceAccount
from meetcute.services.errors import InsufficientBalanceError, ValidationError
from meetcute.services.unit_of_work import unit_of_work
from meetcute.utils.money import format_amount


logger = logging.getLogger(__name__)


def _ensure_positive(amount_cents: int) -> None:
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool):
        raise ValidationError('Amount must be an integer number of cents')
    if amount_cents <= 0:
        raise ValidationError('Amount must be greater than zero')


async def get_balance(db: AsyncSession, user_id: int) -> BalanceAccount:
    async with unit_of_work(db, 'open balance account'):
        account = await get_or_create_balance_account(db, user_id)
    return account


async def debit_balance(db: AsyncSession, user_id: int, amount_cents: int, reason: str) -> BalanceAccount:
    _ensure_positive(amount_cents)
    account = await get_or_create_balance_account(db, user_id, for_update=True)

    if account.balance_cents < amount_cents:
        logger.warning(
            '💸 Debit refused for user #%s: balance %s < %s (%s)',
            user_id,
            format_amount(account.balance_cents),
            format_amount(amount_cents),
            reason,
        )
        raise InsufficientBalanceError(required_cents=amount_cents, available_cents=account.balance_cents)

    old_balance = account.balance_cents
    account.balance_cents = old_balance - amount_cents
    await db.flush()

    logger.info(
        '💸 Balance of user #%s debited: %s → %s (-%s, %s)',
        user_id,
        format_amount(old_balance),
        format_amount(account.balance_cents),
        format_amount(amount_cents),
        reason,
    )
    return account


async def credit_balance(db: AsyncSession, user_id: int, amount_cents: int, reason: str) -> BalanceAccount:
    _ensure_positive(amount_cents)
    account = await get_or_create_balance_account(db, user_id, for_update=True)

    old_balance = account.balance_cents
    account.balance_cents = old_balance + amount_cents
    await db.flush()

    logger.info(
        '💰 Balance of user #%s credited: %s → %s (+%s, %s)',
        user_id,
        format_amount(old_balance),
        format_amount(account.balance_cents),
        format_amount(amount_cents),
        reason,
    )
    return account
