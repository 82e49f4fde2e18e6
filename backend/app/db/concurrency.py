import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import Conflict, GolfError
from app.core.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_optimistic(
    db: Session,
    operation: Callable[[], T],
    *,
    what: str,
    attempts: int | None = None,
) -> T:
    """Run a read-modify-write and commit it, retrying on version conflicts.

    ``operation`` must re-read everything it depends on: each attempt starts
    from a rolled back session. Versioned models (``version_id_col``) make the
    commit fail with ``StaleDataError`` when another writer got there first.
    """

    attempts = attempts or settings.CONFLICT_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.commit()
            return result
        except StaleDataError:
            db.rollback()
            logger.warning("Version conflict on %s (attempt %d/%d)", what, attempt, attempts)
        except IntegrityError:
            db.rollback()
            raise Conflict(f"{what} conflicts with existing data")
        except GolfError:
            db.rollback()
            raise

    raise Conflict(f"{what} was modified concurrently, please retry")


def commit_once(db: Session, *, what: str) -> None:
    """Commit a single write, surfacing storage conflicts as ``Conflict``."""

    try:
        db.commit()
    except (StaleDataError, IntegrityError):
        db.rollback()
        raise Conflict(f"{what} was modified concurrently, please retry")
