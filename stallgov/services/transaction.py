"""Transaction boundary shared by every governance command."""
from contextlib import contextmanager

import structlog
from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError

from stallgov.errors import GovernanceError, TransactionFailedError
from stallgov.extensions import db

logger = structlog.get_logger(__name__)


@contextmanager
def atomic(operation, **context):
    """Run a block of writes as one all-or-nothing transaction.

    Commits when the block exits cleanly and rolls back on any exception.
    Governance errors pass through unchanged; store failures are logged with
    ``context`` and surface as TransactionFailedError.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except GovernanceError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error('transaction_failed', operation=operation, error=str(exc), exc_info=True, **context)
        raise TransactionFailedError(operation) from exc
    except Exception:
        session.rollback()
        raise


def locked_get(model, ident):
    """Load a row for update, bypassing anything cached in the session."""
    return db.session.get(model, ident, with_for_update=True, populate_existing=True)


def guarded_update(model, criteria, values):
    """UPDATE rows matching ``criteria``; returns how many rows changed.

    ``criteria`` carries the precondition (e.g. status == pending), so a
    concurrent writer that got there first leaves zero rows to update.
    """
    stmt = update(model).where(*criteria).values(**values)
    result = db.session.execute(stmt, execution_options={'synchronize_session': 'evaluate'})
    return result.rowcount


def guarded_delete(model, criteria, synchronize='evaluate'):
    """DELETE rows matching ``criteria``; returns how many rows went away.

    Pass ``synchronize=False`` when the criteria use subqueries the session
    cannot evaluate in Python.
    """
    stmt = delete(model).where(*criteria)
    result = db.session.execute(stmt, execution_options={'synchronize_session': synchronize})
    return result.rowcount
