from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.services.errors import Conflict

log = logging.getLogger(__name__)


@contextmanager
def unit_of_work(session: Session):
    """
    One business operation == one transaction.
    Commit when the block finishes, roll back on any exception and re-raise,
    so a failed cascade never leaves half of a change behind.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def flush_or_conflict(session: Session, message: str) -> None:
    """Flush pending rows; a unique-constraint violation becomes a Conflict."""
    try:
        session.flush()
    except IntegrityError as exc:
        log.info("Integrity violation turned into conflict: %s", exc.orig)
        raise Conflict(message) from exc
