from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

_DEPTH_KEY = "smart_transaction_depth"


@contextmanager
def smart_transaction(session: Session) -> Iterator[Session]:
    """
    Run a unit of work on the given Session.

    The outermost block owns the transaction: it commits when the block exits
    cleanly and rolls back on any exception. Blocks opened while another one
    is active get a SAVEPOINT (begin_nested) so they can fail on their own.
    Usage:
        with smart_transaction(db):
            ... DB work ...
    """
    depth = session.info.get(_DEPTH_KEY, 0)
    session.info[_DEPTH_KEY] = depth + 1
    try:
        if depth:
            with session.begin_nested():
                yield session
        else:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
    finally:
        session.info[_DEPTH_KEY] = depth
