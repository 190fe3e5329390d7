"""Balance and withdrawal routes for cabinet."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import User, WithdrawalRequest
from meetcute.services import balance_service, withdrawal_service
from meetcute.services.errors import BillingError
from meetcute.utils.money import format_amount

from ..dependencies import get_cabinet_db, get_current_cabinet_user
from ..errors import billing_http_error
from ..schemas.balance import (
    BalanceResponse,
    WithdrawalCreateRequest,
    WithdrawalCreateResponse,
    WithdrawalResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix='/balance', tags=['Cabinet Balance'])


def withdrawal_to_response(request: WithdrawalRequest) -> WithdrawalResponse:
    return WithdrawalResponse(
        id=request.id,
        amount_cents=request.amount_cents,
        amount=request.amount,
        currency=request.currency,
        status=request.status,
        user_payment_details=request.user_payment_details,
        admin_notes=request.admin_notes,
        processed_at=request.processed_at,
        created_at=request.created_at,
    )


@router.get('', response_model=BalanceResponse)
async def get_balance(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Get current user's balance."""
    try:
        account = await balance_service.get_balance(db, user.id)
    except BillingError as error:
        raise billing_http_error(error) from error

    return BalanceResponse(
        balance_cents=account.balance_cents,
        balance=account.balance,
        balance_display=format_amount(account.balance_cents, account.currency),
        currency=account.currency,
    )


@router.post('/withdrawals', response_model=WithdrawalCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_withdrawal(
    request: WithdrawalCreateRequest,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Request a cash-out. The amount is held on the balance until an admin declines it."""
    try:
        result = await withdrawal_service.create_request(db, user.id, request.amount_cents, request.payment_details)
    except BillingError as error:
        raise billing_http_error(error) from error

    return WithdrawalCreateResponse(
        request=withdrawal_to_response(result.request),
        balance_cents=result.balance_cents,
        balance_display=format_amount(result.balance_cents),
    )


@router.get('/withdrawals', response_model=list[WithdrawalResponse])
async def list_withdrawals(
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """List own withdrawal requests, newest first."""
    requests = await withdrawal_service.list_user_requests(db, user.id)
    return [withdrawal_to_response(item) for item in requests]
