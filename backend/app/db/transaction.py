from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
import logging
import time
from typing import TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from app.core.exceptions import AppError, PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def scheduling_transaction(db: Session, *, operation: str) -> Iterator[Session]:
    """Run conflict reads and period writes as one unit; commit on success, roll back on anything else.

    Driver failures (serialization failures, unique-constraint races, timeouts) surface as
    PersistenceError, which is the only error a caller may retry.
    """
    try:
        yield db
        db.commit()
    except AppError:
        db.rollback()
        raise
    except DBAPIError as exc:
        db.rollback()
        logger.warning(
            "SCHEDULING TRANSACTION FAILED | operation=%s | error=%s",
            operation,
            exc.__class__.__name__,
        )
        raise PersistenceError(
            f"Could not {operation}: the store rejected the transaction",
            details={"operation": operation, "error": exc.__class__.__name__},
        ) from exc
    except BaseException:
        db.rollback()
        raise


def retry_on_persistence_error(
    operation: Callable[[], T],
    *,
    attempts: int,
    backoff_seconds: float = 0.0,
) -> T:
    retry_attempts = max(1, attempts)
    retry_backoff_seconds = max(0.0, backoff_seconds)
    attempt = 1
    while True:
        try:
            return operation()
        except PersistenceError as exc:
            if attempt >= retry_attempts:
                raise
            logger.warning(
                "RETRYING SCHEDULING OPERATION | attempt=%s/%s | reason=%s",
                attempt,
                retry_attempts,
                exc.message,
            )
            if retry_backoff_seconds > 0:
                time.sleep(retry_backoff_seconds * attempt)
            attempt += 1
