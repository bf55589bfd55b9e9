"""Database schema initialization and seeding.

Functions
---------
seed_database : Create tables and, optionally, a demo team with packages

Examples
--------
>>> seed_database("sqlite:///storage/appguard.db", demo=True)
"""
from __future__ import annotations

from sqlalchemy import text

from appguard.core.logging_config import get_logger
from appguard.core.models.orm import InstalledPackageRecord, TeamRecord
from .connection import get_engine, get_session_factory
from .utils import init_db, session_scope

logger = get_logger(__name__)


def seed_database(url: str, demo: bool = False) -> None:
    engine = get_engine(url)
    if engine.dialect.name == "sqlite" and engine.url.database not in (None, "", ":memory:"):
        with engine.connect() as conn:
            conn.execute(text("PRAGMA journal_mode=WAL"))
            conn.execute(text("PRAGMA synchronous = NORMAL"))
            conn.commit()
    init_db(engine)
    logger.info("Database schema ready at %s", engine.url.render_as_string(hide_password=True))

    if demo:
        with session_scope(get_session_factory(url)) as session:
            if session.query(TeamRecord).count():
                return
            team = TeamRecord(name="Demo Team", tenant_id="demo", tier="free", member_count=3)
            team.installed.append(
                InstalledPackageRecord(name="CRM", type="laravel_module", permissions=["database_read"], version="2.1.0")
            )
            session.add(team)
        logger.info("Seeded demo team")


__all__ = ["seed_database"]
