"""
Transaction guard for request handlers that write to the database.

A submission is graded and stored inside one ``handle_db_error`` block, so
either the whole write commits or nothing is left in the session.

    with handle_db_error(db, "record submission"):
        outcome = ledger.insert_if_absent(submission)
        db.commit()
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from dailytest.core.error_responses import ErrorMessages


logger = logging.getLogger(__name__)


@contextmanager
def handle_db_error(
    db: Session,
    operation_name: str,
    *,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    detail: Optional[str] = None,
    log_level: int = logging.ERROR,
) -> Generator[None, None, None]:
    """Roll back ``db`` when the wrapped block raises.

    HTTPExceptions pass through unchanged after the rollback, so a handler
    can reject a request (for example with 409) from inside the block. Any
    other error is logged with its traceback and replaced by an
    HTTPException whose detail never includes the database message.

    Args:
        db: Session to roll back.
        operation_name: Short description used in the log line and in the
            generic "Failed to <operation>" detail.
        status_code: Status of the replacement HTTPException.
        detail: User-facing message overriding the generic one.
        log_level: Level for the log line.
    """
    try:
        yield
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()

        logger.log(
            log_level,
            f"Database error during {operation_name}: {e}",
            exc_info=True,
        )

        raise HTTPException(
            status_code=status_code,
            detail=detail or ErrorMessages.database_operation_failed(operation_name),
        )
