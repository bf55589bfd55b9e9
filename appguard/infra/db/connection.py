"""Database connection management.

This module builds and caches SQLAlchemy engines and session factories.
Engines are cached per URL so every component of one process shares a
single connection pool.

Functions
---------
get_engine : Get SQLAlchemy engine for a URL
get_session_factory : Get the sessionmaker bound to that engine

Examples
--------
>>> engine = get_engine("sqlite:///storage/appguard.db")

See Also
--------
appguard.infra.db.utils : Session helpers
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


@lru_cache(maxsize=8)
def _cached_engine(url: str, echo: bool) -> Engine:
    kwargs = {"echo": echo, "future": True}
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if _is_memory_sqlite(url):
            # one shared connection, otherwise each checkout sees an empty db
            kwargs["poolclass"] = StaticPool
        else:
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, **kwargs)


def get_engine(url: str, echo: bool = False) -> Engine:
    """Return the process-wide engine for ``url``; one per (url, echo) pair."""
    return _cached_engine(url, bool(echo))


@lru_cache(maxsize=8)
def _cached_session_factory(url: str, echo: bool) -> sessionmaker:
    return sessionmaker(
        bind=get_engine(url, echo), autoflush=False, autocommit=False,
        expire_on_commit=False, future=True,
    )


def get_session_factory(url: str, echo: bool = False) -> sessionmaker:
    return _cached_session_factory(url, bool(echo))


__all__ = ["get_engine", "get_session_factory"]
