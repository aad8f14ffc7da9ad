# Overview: Transaction helpers; every public service operation is one unit of work.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_atomic(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute func and commit; roll everything back if anything fails.

    - OperationalError (locks, deadlocks) is retried with backoff.
    - StaleDataError (optimistic version mismatch) and IntegrityError
      (unique constraints such as one ACTIVE session per PC) mean another
      writer won the race and are reported as ConflictError.
    - Any other exception, including BillingError, is re-raised untouched
      after the rollback so no half-applied change survives.
    """
    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except StaleDataError as exc:
            db.session.rollback()
            raise ConflictError("Record was modified by another request; please retry") from exc
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError(
                "Uniqueness conflict while saving",
                details={"reason": str(exc.orig)},
            ) from exc
        except Exception:
            db.session.rollback()
            raise
