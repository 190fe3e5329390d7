"""Admin routes for withdrawal requests in cabinet."""

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import User
from meetcute.services import withdrawal_service
from meetcute.services.errors import BillingError
from meetcute.services.notification_service import notification_service

from ..dependencies import get_cabinet_db, get_current_admin_user
from ..errors import billing_http_error
from ..schemas.balance import WithdrawalResponse
from .balance import withdrawal_to_response


logger = logging.getLogger(__name__)

router = APIRouter(prefix='/admin/withdrawals', tags=['Cabinet Admin Withdrawals'])


class AdminWithdrawalResponse(WithdrawalResponse):
    user_id: int
    processed_by: int | None = None


class AdminWithdrawalListResponse(BaseModel):
    items: list[AdminWithdrawalResponse]
    total: int
    limit: int
    offset: int


class WithdrawalStatusUpdateRequest(BaseModel):
    status: str = Field(..., description='approved, declined or processed')
    admin_notes: str | None = Field(default=None, max_length=2000)


def _admin_withdrawal(request) -> AdminWithdrawalResponse:
    return AdminWithdrawalResponse(
        **withdrawal_to_response(request).model_dump(),
        user_id=request.user_id,
        processed_by=request.processed_by,
    )


@router.get('', response_model=AdminWithdrawalListResponse)
async def list_withdrawals(
    status: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        items, total = await withdrawal_service.list_requests(db, status, limit=limit, offset=offset)
    except BillingError as error:
        raise billing_http_error(error) from error
    return AdminWithdrawalListResponse(
        items=[_admin_withdrawal(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.put('/{request_id}/status', response_model=AdminWithdrawalResponse)
async def update_withdrawal_status(
    request_id: int,
    request: WithdrawalStatusUpdateRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Approve, process or decline a request. Declining refunds the held amount."""
    try:
        withdrawal = await withdrawal_service.update_status(
            db, request_id, request.status, admin.id, request.admin_notes
        )
    except BillingError as error:
        raise billing_http_error(error) from error

    await notification_service.notify_withdrawal_updated(withdrawal)
    return _admin_withdrawal(withdrawal)
