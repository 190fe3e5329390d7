import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from meetcute.services.errors import BillingError, ConcurrencyConflictError


logger = logging.getLogger(__name__)


@asynccontextmanager
async def unit_of_work(db: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """Run a workflow as one atomic unit: commit on success, roll back on any error.

    Lock timeouts, deadlocks and unique-key races surface as a retryable
    ``ConcurrencyConflictError``; business errors propagate unchanged.
    """
    try:
        yield db
        await db.commit()
    except BillingError as error:
        await db.rollback()
        logger.warning('%s rejected: %s (%s)', operation, error, error.code)
        raise
    except (OperationalError, IntegrityError) as error:
        await db.rollback()
        logger.warning('%s aborted on storage conflict: %s', operation, error)
        raise ConcurrencyConflictError() from error
    except Exception:
        await db.rollback()
        logger.exception('%s failed unexpectedly', operation)
        raise
