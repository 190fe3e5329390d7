import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from meetcute.database.models import (
    ItemCategory,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from meetcute.utils.money import format_money_from_minor


logger = logging.getLogger(__name__)


async def create_transaction(
    db: AsyncSession,
    user_id: int,
    amount_cents: int,
    currency: str,
    *,
    type: TransactionType = TransactionType.MANUAL_PAYMENT,
    status: TransactionStatus = TransactionStatus.PENDING_PAYMENT,
    item_category: ItemCategory | None = None,
    payable_item_id: int | None = None,
    payment_country_id: int | None = None,
    payment_method_type_id: int | None = None,
    item_metadata: dict | None = None,
) -> Transaction:
    transaction = Transaction(
        user_id=user_id,
        type=type.value,
        amount_cents=amount_cents,
        currency=currency,
        status=status.value,
        item_category=item_category.value if item_category else None,
        payable_item_id=payable_item_id,
        payment_country_id=payment_country_id,
        payment_method_type_id=payment_method_type_id,
        item_metadata=item_metadata,
    )

    db.add(transaction)
    await db.flush()

    logger.info(
        '💳 Transaction #%s created: %s/%s %s for user #%s',
        transaction.id,
        type.value,
        item_category.value if item_category else '-',
        format_money_from_minor(amount_cents, currency),
        user_id,
    )
    return transaction


async def get_transaction_by_id(
    db: AsyncSession,
    transaction_id: int,
    *,
    for_update: bool = False,
) -> Transaction | None:
    query = select(Transaction).where(Transaction.id == transaction_id)
    if for_update:
        query = query.with_for_update()
    else:
        query = query.options(selectinload(Transaction.payment_method_type), selectinload(Transaction.payment_country))
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_user_transaction(
    db: AsyncSession,
    transaction_id: int,
    user_id: int,
    *,
    for_update: bool = False,
) -> Transaction | None:
    """Transaction scoped to its owner; other users' ids behave as missing."""
    query = select(Transaction).where(Transaction.id == transaction_id, Transaction.user_id == user_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_user_transactions(db: AsyncSession, user_id: int, limit: int = 10, offset: int = 0) -> list[Transaction]:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.user_id == user_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_user_transactions_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(select(func.count(Transaction.id)).where(Transaction.user_id == user_id))
    return result.scalar() or 0


async def get_pending_verification_transactions(
    db: AsyncSession,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Transaction], int]:
    """Admin review queue, oldest first."""
    base_filter = Transaction.status == TransactionStatus.PENDING_VERIFICATION.value

    count_result = await db.execute(select(func.count(Transaction.id)).where(base_filter))
    total = count_result.scalar() or 0

    result = await db.execute(
        select(Transaction)
        .options(selectinload(Transaction.user), selectinload(Transaction.payment_method_type))
        .where(base_filter)
        .order_by(Transaction.created_at.asc(), Transaction.id.asc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total
