"""Admin routes for verifying manual payments in cabinet."""

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.config import settings
from meetcute.database.models import User
from meetcute.services import transaction_service
from meetcute.services.errors import BillingError
from meetcute.services.notification_service import notification_service

from ..dependencies import get_cabinet_db, get_current_admin_user
from ..errors import billing_http_error
from ..schemas.transactions import TransactionResponse
from .transactions import transaction_to_response


logger = logging.getLogger(__name__)

router = APIRouter(prefix='/admin/transactions', tags=['Cabinet Admin Transactions'])


# ============ Schemas ============


class AdminTransactionResponse(TransactionResponse):
    user_id: int
    item_metadata: dict | None = None
    verified_by: int | None = None


class AdminTransactionListResponse(BaseModel):
    items: list[AdminTransactionResponse]
    total: int
    limit: int
    offset: int


class VerifyTransactionRequest(BaseModel):
    status: str = Field(..., description='completed or declined')
    admin_notes: str | None = Field(default=None, max_length=2000)


class VerifyTransactionResponse(BaseModel):
    transaction: AdminTransactionResponse
    fulfillment: str
    subscription_id: int | None = None
    gift_id: int | None = None
    boost_id: int | None = None
    reconciliation_issue_id: int | None = None


# ============ Helpers ============


def _admin_transaction(transaction) -> AdminTransactionResponse:
    base = transaction_to_response(transaction)
    return AdminTransactionResponse(
        **base.model_dump(),
        user_id=transaction.user_id,
        item_metadata=transaction.item_metadata,
        verified_by=transaction.verified_by,
    )


# ============ Routes ============


@router.get('/pending-verification', response_model=AdminTransactionListResponse)
async def list_pending_verification(
    limit: int = Query(settings.PENDING_VERIFICATION_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Transactions waiting for an admin, oldest first."""
    items, total = await transaction_service.list_pending_verification(db, limit=limit, offset=offset)
    return AdminTransactionListResponse(
        items=[_admin_transaction(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get('/{transaction_id}', response_model=AdminTransactionResponse)
async def get_transaction(
    transaction_id: int,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        transaction = await transaction_service.get_transaction_for_admin(db, transaction_id)
    except BillingError as error:
        raise billing_http_error(error) from error
    return _admin_transaction(transaction)


@router.post('/{transaction_id}/verify', response_model=VerifyTransactionResponse)
async def verify_transaction(
    transaction_id: int,
    request: VerifyTransactionRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Complete or decline a transaction. Completing it fulfils the purchased item."""
    try:
        result = await transaction_service.verify(db, transaction_id, admin.id, request.status, request.admin_notes)
    except BillingError as error:
        raise billing_http_error(error) from error

    logger.info('Admin %s verified transaction #%s as %s', admin.id, transaction_id, request.status)
    await notification_service.notify_transaction_verified(result)

    return VerifyTransactionResponse(
        transaction=_admin_transaction(result.transaction),
        fulfillment=result.fulfillment,
        subscription_id=result.subscription.id if result.subscription else None,
        gift_id=result.gift.id if result.gift else None,
        boost_id=result.boost.id if result.boost else None,
        reconciliation_issue_id=result.reconciliation_issue.id if result.reconciliation_issue else None,
    )
