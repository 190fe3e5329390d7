import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.config import settings
from meetcute.database.crud.withdrawal import (
    create_withdrawal_request,
    get_user_withdrawal_requests,
    get_withdrawal_request_by_id,
    get_withdrawal_requests,
)
from meetcute.database.models import WithdrawalRequest, WithdrawalRequestStatus
from meetcute.services.balance_service import credit_balance, debit_balance
from meetcute.services.errors import InvalidStateTransitionError, NotFoundError, ValidationError
from meetcute.services.unit_of_work import unit_of_work
from meetcute.utils.money import format_amount, format_money_from_minor
from meetcute.utils.timezone import utcnow


logger = logging.getLogger(__name__)


# declined and processed are terminal; processed funds may already be in flight
ALLOWED_TRANSITIONS: dict[WithdrawalRequestStatus, frozenset[WithdrawalRequestStatus]] = {
    WithdrawalRequestStatus.PENDING: frozenset({WithdrawalRequestStatus.APPROVED, WithdrawalRequestStatus.DECLINED}),
    WithdrawalRequestStatus.APPROVED: frozenset({WithdrawalRequestStatus.PROCESSED, WithdrawalRequestStatus.DECLINED}),
    WithdrawalRequestStatus.DECLINED: frozenset(),
    WithdrawalRequestStatus.PROCESSED: frozenset(),
}


@dataclass(slots=True)
class WithdrawalCreateResult:
    request: WithdrawalRequest
    balance_cents: int


def _parse_status(value: str | WithdrawalRequestStatus) -> WithdrawalRequestStatus:
    if isinstance(value, WithdrawalRequestStatus):
        return value
    try:
        return WithdrawalRequestStatus((value or '').strip().lower())
    except ValueError as error:
        allowed = ', '.join(status.value for status in WithdrawalRequestStatus)
        raise ValidationError(f'Invalid withdrawal status. Use one of: {allowed}') from error


async def create_request(
    db: AsyncSession,
    user_id: int,
    amount_cents: int,
    payment_details: str,
) -> WithdrawalCreateResult:
    """Hold the amount on the balance and open a pending withdrawal request."""
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError('Withdrawal amount must be greater than zero')
    if amount_cents < settings.MIN_WITHDRAWAL_AMOUNT_CENTS:
        minimum = format_money_from_minor(settings.MIN_WITHDRAWAL_AMOUNT_CENTS, settings.get_default_currency())
        raise ValidationError(
            f'Minimum withdrawal amount is {minimum}',
            code='amount_below_minimum',
        )
    payment_details = (payment_details or '').strip()
    if not payment_details:
        raise ValidationError('Payment details are required')

    async with unit_of_work(db, f'withdrawal request of user #{user_id}'):
        account = await debit_balance(db, user_id, amount_cents, 'withdrawal hold')
        request = await create_withdrawal_request(db, user_id, amount_cents, account.currency, payment_details)
        balance_cents = account.balance_cents

    logger.info(
        '🏧 Withdrawal request #%s opened by user #%s for %s',
        request.id,
        user_id,
        format_amount(amount_cents),
    )
    return WithdrawalCreateResult(request=request, balance_cents=balance_cents)


async def list_user_requests(db: AsyncSession, user_id: int) -> list[WithdrawalRequest]:
    return await get_user_withdrawal_requests(db, user_id)


async def list_requests(
    db: AsyncSession,
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[WithdrawalRequest], int]:
    parsed = _parse_status(status) if status else None
    return await get_withdrawal_requests(db, parsed, limit=limit, offset=offset)


async def update_status(
    db: AsyncSession,
    request_id: int,
    new_status: str | WithdrawalRequestStatus,
    admin_id: int,
    notes: str | None = None,
) -> WithdrawalRequest:
    """Move a request along its state machine; declining refunds the held amount once."""
    target = _parse_status(new_status)
    if target == WithdrawalRequestStatus.PENDING:
        raise ValidationError('A request cannot be moved back to pending')

    async with unit_of_work(db, f'withdrawal request #{request_id} → {target.value}'):
        request = await get_withdrawal_request_by_id(db, request_id, for_update=True)
        if request is None:
            raise NotFoundError('Withdrawal request not found')

        current = WithdrawalRequestStatus(request.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            if current == WithdrawalRequestStatus.PROCESSED and target == WithdrawalRequestStatus.DECLINED:
                message = 'Processed withdrawals cannot be declined; manual reconciliation is required'
            else:
                message = f'Withdrawal request is {current.value} and cannot become {target.value}'
            raise InvalidStateTransitionError(message, current_status=current.value, target_status=target.value)

        request.status = target.value
        request.admin_notes = notes
        request.processed_by = admin_id
        request.processed_at = utcnow()

        if target == WithdrawalRequestStatus.DECLINED:
            await credit_balance(db, request.user_id, request.amount_cents, f'withdrawal #{request.id} declined')

        await db.flush()

    logger.info(
        '🏧 Withdrawal request #%s: %s → %s by admin #%s',
        request_id,
        current.value,
        target.value,
        admin_id,
    )
    return request
