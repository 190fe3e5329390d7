"""Manual-payment transaction routes for cabinet."""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.config import settings
from meetcute.database.models import Transaction, User
from meetcute.services import transaction_service
from meetcute.services.errors import BillingError

from ..dependencies import get_cabinet_db, get_current_cabinet_user
from ..errors import billing_http_error
from ..schemas.transactions import (
    SubmitReferenceRequest,
    TransactionInitiateRequest,
    TransactionInitiateResponse,
    TransactionListResponse,
    TransactionResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix='/transactions', tags=['Cabinet Transactions'])


def transaction_to_response(transaction: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=transaction.id,
        type=transaction.type,
        item_category=transaction.item_category,
        payable_item_id=transaction.payable_item_id,
        amount_cents=transaction.amount_cents,
        amount=transaction.amount,
        currency=transaction.currency,
        status=transaction.status,
        payment_country_id=transaction.payment_country_id,
        payment_method_type_id=transaction.payment_method_type_id,
        user_provided_reference=transaction.user_provided_reference,
        admin_notes=transaction.admin_notes,
        created_at=transaction.created_at,
        updated_at=transaction.updated_at,
    )


@router.post('/initiate', response_model=TransactionInitiateResponse, status_code=status.HTTP_201_CREATED)
async def initiate_transaction(
    request: TransactionInitiateRequest,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Start a purchase and get the instructions for paying it."""
    try:
        result = await transaction_service.initiate(
            db,
            user.id,
            request.country_id,
            request.payment_method_type_id,
            request.item_category,
            request.item_id,
            amount_cents=request.amount_cents,
            recipient_id=request.recipient_id,
            message=request.message,
            is_anonymous=request.is_anonymous,
        )
    except BillingError as error:
        raise billing_http_error(error) from error

    return TransactionInitiateResponse(
        transaction=transaction_to_response(result.transaction),
        payment_instructions=result.payment_instructions,
        payment_configuration_details=result.payment_configuration_details,
    )


@router.post('/{transaction_id}/submit-reference', response_model=TransactionResponse)
async def submit_payment_reference(
    transaction_id: int,
    request: SubmitReferenceRequest,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Attach the reference of the payment the user made."""
    try:
        transaction = await transaction_service.submit_reference(db, user.id, transaction_id, request.reference)
    except BillingError as error:
        raise billing_http_error(error) from error
    return transaction_to_response(transaction)


@router.get('', response_model=TransactionListResponse)
async def list_transactions(
    limit: int = Query(settings.USER_TRANSACTIONS_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    """Get own transaction history, newest first."""
    items, total = await transaction_service.list_user_transactions(db, user.id, limit=limit, offset=offset)
    return TransactionListResponse(
        items=[transaction_to_response(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get('/{transaction_id}', response_model=TransactionResponse)
async def get_transaction_status(
    transaction_id: int,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        transaction = await transaction_service.get_transaction_status(db, user.id, transaction_id)
    except BillingError as error:
        raise billing_http_error(error) from error
    return transaction_to_response(transaction)
