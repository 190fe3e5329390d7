"""Admin routes for transactions that were paid but could not be fulfilled."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import User
from meetcute.services import reconciliation_service
from meetcute.services.errors import BillingError

from ..dependencies import get_cabinet_db, get_current_admin_user
from ..errors import billing_http_error


router = APIRouter(prefix='/admin/reconciliation', tags=['Cabinet Admin Reconciliation'])


class ReconciliationIssueResponse(BaseModel):
    id: int
    transaction_id: int
    kind: str
    details: dict | None = None
    is_resolved: bool
    resolved_by: int | None = None
    resolved_at: datetime | None = None
    resolution_notes: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReconciliationIssueListResponse(BaseModel):
    items: list[ReconciliationIssueResponse]
    total: int
    limit: int
    offset: int


class ResolveIssueRequest(BaseModel):
    resolution_notes: str | None = Field(default=None, max_length=2000)


@router.get('/issues', response_model=ReconciliationIssueListResponse)
async def list_issues(
    is_resolved: bool | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    items, total = await reconciliation_service.list_issues(db, is_resolved=is_resolved, limit=limit, offset=offset)
    return ReconciliationIssueListResponse(
        items=[ReconciliationIssueResponse.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post('/issues/{issue_id}/resolve', response_model=ReconciliationIssueResponse)
async def resolve_issue(
    issue_id: int,
    request: ResolveIssueRequest,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    try:
        issue = await reconciliation_service.resolve_issue(db, issue_id, admin.id, request.resolution_notes)
    except BillingError as error:
        raise billing_http_error(error) from error
    return ReconciliationIssueResponse.model_validate(issue)
