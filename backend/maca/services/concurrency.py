# Overview: Transaction and concurrency helpers shared by the services.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError

logger = logging.getLogger(__name__)


def run_in_transaction(func):
    """
    Run a unit of work and commit it; roll back on any exception.

    Every write path of the core goes through here, so a raised validation
    error or conflict never leaves partial rows behind. Optimistic-lock
    failures surface as ConflictError.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError("Record was modified by a concurrent transaction") from exc
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute an operation with retry on concurrency-related failures.

    Retries on ConflictError (stock or invoice changed underneath) and
    OperationalError (locked database). Meant for the request layer; the
    services themselves never retry.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (ConflictError, OperationalError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.info("Retrying after concurrent update (attempt %s of %s): %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
