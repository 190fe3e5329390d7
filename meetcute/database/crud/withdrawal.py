import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from meetcute.database.models import WithdrawalRequest, WithdrawalRequestStatus


logger = logging.getLogger(__name__)


async def create_withdrawal_request(
    db: AsyncSession,
    user_id: int,
    amount_cents: int,
    currency: str,
    user_payment_details: str,
) -> WithdrawalRequest:
    request = WithdrawalRequest(
        user_id=user_id,
        amount_cents=amount_cents,
        currency=currency,
        user_payment_details=user_payment_details,
        status=WithdrawalRequestStatus.PENDING.value,
    )
    db.add(request)
    await db.flush()
    return request


async def get_withdrawal_request_by_id(
    db: AsyncSession,
    request_id: int,
    *,
    for_update: bool = False,
) -> WithdrawalRequest | None:
    query = select(WithdrawalRequest).where(WithdrawalRequest.id == request_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_user_withdrawal_requests(db: AsyncSession, user_id: int) -> list[WithdrawalRequest]:
    result = await db.execute(
        select(WithdrawalRequest)
        .where(WithdrawalRequest.user_id == user_id)
        .order_by(WithdrawalRequest.created_at.desc(), WithdrawalRequest.id.desc())
    )
    return list(result.scalars().all())


async def get_withdrawal_requests(
    db: AsyncSession,
    status: WithdrawalRequestStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[WithdrawalRequest], int]:
    query = select(WithdrawalRequest).options(selectinload(WithdrawalRequest.user))
    count_query = select(func.count(WithdrawalRequest.id))
    if status is not None:
        query = query.where(WithdrawalRequest.status == status.value)
        count_query = count_query.where(WithdrawalRequest.status == status.value)

    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    result = await db.execute(
        query.order_by(WithdrawalRequest.created_at.desc(), WithdrawalRequest.id.desc()).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), total
