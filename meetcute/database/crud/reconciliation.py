import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.models import ReconciliationIssue, ReconciliationIssueKind


logger = logging.getLogger(__name__)


async def create_reconciliation_issue(
    db: AsyncSession,
    transaction_id: int,
    kind: ReconciliationIssueKind,
    details: dict | None = None,
) -> ReconciliationIssue:
    issue = ReconciliationIssue(transaction_id=transaction_id, kind=kind.value, details=details, is_resolved=False)
    db.add(issue)
    await db.flush()
    logger.critical(
        '🚨 Transaction #%s committed without fulfillment (%s), reconciliation issue #%s opened: %s',
        transaction_id,
        kind.value,
        issue.id,
        details,
    )
    return issue


async def get_reconciliation_issue_by_id(
    db: AsyncSession,
    issue_id: int,
    *,
    for_update: bool = False,
) -> ReconciliationIssue | None:
    query = select(ReconciliationIssue).where(ReconciliationIssue.id == issue_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_reconciliation_issues(
    db: AsyncSession,
    is_resolved: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ReconciliationIssue], int]:
    query = select(ReconciliationIssue)
    count_query = select(func.count(ReconciliationIssue.id))
    if is_resolved is not None:
        query = query.where(ReconciliationIssue.is_resolved.is_(is_resolved))
        count_query = count_query.where(ReconciliationIssue.is_resolved.is_(is_resolved))

    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    result = await db.execute(
        query.order_by(ReconciliationIssue.created_at.asc(), ReconciliationIssue.id.asc()).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), total
