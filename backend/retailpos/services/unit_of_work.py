# Overview: Transaction boundary helper shared by every multi-statement write.

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from ..errors import PersistenceError
from ..extensions import db

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work():
    """
    Run a block of statements as one database transaction.

    Commits when the block exits normally. On any exception the session is
    rolled back so no partial write is ever visible; driver errors are
    logged and re-raised as a generic PersistenceError, service errors
    propagate unchanged. There is no retry.
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Unit of work failed; rolled back")
        raise PersistenceError() from exc
    except Exception:
        db.session.rollback()
        raise
