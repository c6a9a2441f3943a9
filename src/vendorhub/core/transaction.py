"""Atomic read-modify-write units over an AsyncSession.

Every operation that reads a shared numeric field and writes it back runs
inside ``atomic()``. Protection is layered:

- Layer 1: PostgreSQL row-level lock (SELECT ... FOR UPDATE)
- Layer 2: Optimistic locking (``version_id_col`` on every mutable model)
- Layer 3: Bounded retry on version conflicts, serialization failures
  and deadlocks

Nested ``atomic()`` calls on the same session join the outer unit, so a
group-order close that spawns several orders commits or rolls back as one.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import Select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from vendorhub.core.config import settings
from vendorhub.core.exceptions import ConcurrencyError
from vendorhub.middleware.metrics import record_tx_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ATOMIC_KEY = "vendorhub.atomic"

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


def for_update(stmt: Select) -> Select:
    """Row-lock the selected rows and overwrite any identity-map copies."""
    return stmt.with_for_update().execution_options(populate_existing=True)


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return sqlstate in _RETRYABLE_SQLSTATES
    return False


def in_atomic(session: AsyncSession) -> bool:
    return bool(session.info.get(_ATOMIC_KEY))


async def atomic(
    session: AsyncSession,
    work: Callable[[], Awaitable[T]],
    *,
    name: str = "unit",
    max_attempts: int | None = None,
) -> T:
    """Run ``work`` as one transaction, retrying on concurrency conflicts.

    Args:
        session: Request-scoped async session
        work: Coroutine factory; re-invoked from scratch on every attempt
        name: Label used in logs and metrics
        max_attempts: Override for ``settings.TX_MAX_ATTEMPTS``

    Returns:
        Whatever ``work`` returns

    Raises:
        ConcurrencyError: Conflicts persisted past the last attempt
    """
    if in_atomic(session):
        return await work()

    # Close any implicit transaction left open by earlier reads
    if session.in_transaction():
        await session.commit()

    attempts = max_attempts or settings.TX_MAX_ATTEMPTS
    delay = settings.TX_RETRY_BACKOFF_SECONDS

    for attempt in range(1, attempts + 1):
        session.info[_ATOMIC_KEY] = True
        try:
            async with session.begin():
                return await work()
        except Exception as e:
            if not _is_retryable(e):
                raise
            record_tx_retry(name)
            if attempt == attempts:
                logger.error(f"Atomic unit {name} gave up after {attempts} attempts: {e}")
                raise ConcurrencyError(
                    "The record was modified concurrently, please retry"
                ) from e
            logger.warning(
                f"Concurrent update in {name}, retrying in {delay:.3f}s "
                f"(attempt {attempt}/{attempts})"
            )
            await asyncio.sleep(delay)
            delay *= 2
        finally:
            session.info.pop(_ATOMIC_KEY, None)

    raise AssertionError("unreachable")
