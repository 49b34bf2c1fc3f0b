"""
Bounded, retried storage attempts.

Every engine operation runs as one attempt against the session: a coroutine
that reads, decides and commits (or rolls back). An attempt that times out or
hits a connection-level error is rolled back and retried with exponential
backoff. This is safe because commits are idempotent under the uniqueness
constraints: replaying an admission that did commit yields already-admitted.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from facility_access.core.config import get_settings
from facility_access.core.exceptions import TransientStorageFailure
from facility_access.core.logging import get_logger
from facility_access.core.metrics import record_storage_failure, record_storage_retry

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (asyncio.TimeoutError, OperationalError, InterfaceError)


async def run_with_retry(
    db: AsyncSession,
    operation: str,
    attempt: Callable[[], Awaitable[T]],
    max_attempts: int | None = None,
    timeout: float | None = None,
    backoff: float | None = None,
) -> T:
    settings = get_settings()
    max_attempts = max_attempts or settings.STORAGE_MAX_RETRIES
    timeout = timeout if timeout is not None else settings.STORAGE_TIMEOUT_SECONDS
    backoff = backoff if backoff is not None else settings.STORAGE_RETRY_BACKOFF_SECONDS

    last_error: Exception | None = None
    for attempt_no in range(1, max_attempts + 1):
        try:
            return await asyncio.wait_for(attempt(), timeout=timeout)
        except TRANSIENT_ERRORS as e:
            last_error = e
            await _safe_rollback(db)
            logger.warning(
                "storage_attempt_failed",
                operation=operation,
                attempt=attempt_no,
                error=str(e) or type(e).__name__,
            )
            if attempt_no == max_attempts:
                break
            record_storage_retry(operation)
            await asyncio.sleep(backoff * (2 ** (attempt_no - 1)))
        except Exception:
            await _safe_rollback(db)
            raise

    record_storage_failure(operation)
    logger.error("storage_retries_exhausted", operation=operation, attempts=max_attempts)
    raise TransientStorageFailure(operation, max_attempts, last_error)


async def _safe_rollback(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except TRANSIENT_ERRORS as e:
        # The connection is already gone; the pool discards it
        logger.warning("storage_rollback_failed", error=str(e) or type(e).__name__)
