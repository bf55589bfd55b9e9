"""Database utility functions.

This module provides session scoping and schema creation helpers.

Functions
---------
session_scope : Transactional session context manager
init_db : Create all tables

Examples
--------
>>> factory = get_session_factory("sqlite:///storage/appguard.db")
>>> with session_scope(factory) as sess:
...     count = sess.query(PackageRecord).count()

See Also
--------
appguard.infra.db.connection : Connection management
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from appguard.core.models.orm import Base


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


__all__ = ["session_scope", "init_db"]
