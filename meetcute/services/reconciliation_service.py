import logging

from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.database.crud.reconciliation import get_reconciliation_issue_by_id, get_reconciliation_issues
from meetcute.database.models import ReconciliationIssue
from meetcute.services.errors import InvalidStateTransitionError, NotFoundError
from meetcute.services.unit_of_work import unit_of_work
from meetcute.utils.timezone import utcnow


logger = logging.getLogger(__name__)


async def list_issues(
    db: AsyncSession,
    is_resolved: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ReconciliationIssue], int]:
    return await get_reconciliation_issues(db, is_resolved=is_resolved, limit=limit, offset=offset)


async def resolve_issue(db: AsyncSession, issue_id: int, admin_id: int, notes: str | None = None) -> ReconciliationIssue:
    async with unit_of_work(db, f'resolve reconciliation issue #{issue_id}'):
        issue = await get_reconciliation_issue_by_id(db, issue_id, for_update=True)
        if issue is None:
            raise NotFoundError('Reconciliation issue not found')
        if issue.is_resolved:
            raise InvalidStateTransitionError('Reconciliation issue is already resolved')

        issue.is_resolved = True
        issue.resolved_by = admin_id
        issue.resolved_at = utcnow()
        issue.resolution_notes = notes
        await db.flush()

    logger.info('🧾 Reconciliation issue #%s resolved by admin #%s', issue_id, admin_id)
    return issue
