"""Bounded retry of store transactions on transient failures.

A unit of work runs inside exactly one transaction. Connection-level failures
(OperationalError, DisconnectionError) roll the transaction back and re-run the
whole unit with exponential backoff; any other exception rolls back and
propagates unchanged.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.orm import Session

from observability.metrics import store_retries_total

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, DisconnectionError)


class StoreUnavailableError(Exception):
    """Raised when the store stays unreachable after all retries."""
    pass


def compute_backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff delay for a 1-based retry attempt, capped at max_delay."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


def run_in_transaction(
    session_factory: Callable[[], Session],
    work: Callable[[Session], T],
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    operation: str = "transaction",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run work(session) in its own transaction, retrying transient failures.

    A fresh session is opened per attempt. The transaction commits only if
    work returns normally, so a failed or interrupted attempt leaves nothing
    behind.

    Args:
        session_factory: Callable returning a new Session
        work: Unit of work; receives the session, returns the result
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry in seconds
        max_delay: Backoff ceiling in seconds
        operation: Label used in logs and metrics
        sleep: Sleep function (injectable for tests)

    Returns:
        Whatever work returned

    Raises:
        StoreUnavailableError: If every attempt failed with a transient error
    """
    attempt = 0
    last_error: Optional[Exception] = None

    while attempt <= max_retries:
        session = session_factory()
        try:
            result = work(session)
            session.commit()
            return result
        except TRANSIENT_ERRORS as e:
            session.rollback()
            last_error = e
            attempt += 1
            if attempt > max_retries:
                break
            delay = compute_backoff(attempt, base_delay, max_delay)
            store_retries_total.labels(operation=operation).inc()
            logger.warning(
                f"Transient store failure during {operation}, retrying in {delay:.2f}s",
                extra={"attempt": attempt, "error": str(e)}
            )
            sleep(delay)
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    logger.error(
        f"Store unavailable after {max_retries} retries during {operation}",
        extra={"error": str(last_error)}
    )
    raise StoreUnavailableError(
        f"Store unavailable after {max_retries} retries: {last_error}"
    ) from last_error
