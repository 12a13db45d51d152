from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_settings

settings = get_settings()

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@contextmanager
def transaction_scope(db: Session) -> Iterator[Session]:
    """Run a validate-then-write unit of work on ``db``.

    Commits when the block exits cleanly and rolls back everything written
    inside it when any exception escapes.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
