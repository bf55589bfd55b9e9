from __future__ import annotations

"""Database infrastructure and utilities.

Modules
-------
connection : Engine and session factory caching
seed : Database schema initialization
utils : Session scope and schema helpers

See Also
--------
appguard.core.models.orm : ORM models
"""

from .connection import get_engine, get_session_factory
from .utils import init_db, session_scope

__all__ = ["get_engine", "get_session_factory", "init_db", "session_scope"]
