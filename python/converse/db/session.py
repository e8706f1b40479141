"""Session factories and the unit-of-work helper used by the SQL store."""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from converse.db.engine import get_engine


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Build a sessionmaker for the given engine (default: the cached app engine).

    Loaded attributes survive commit so rows can be converted to schemas
    after the session closes.
    """
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


@contextmanager
def transaction(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Open a session, yield it, and commit once the block exits cleanly.

    Any exception rolls the whole unit back before it propagates.

    Usage:
        with transaction(factory) as db:
            db.add(row)
            db.execute(delete(...))
    """
    with session_factory() as db:
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
