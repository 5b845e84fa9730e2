"""Database initialization helpers."""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.engine import Engine

from .db_models import Base


def init_db(engine: Engine) -> None:
    """Create tables and backfill columns added after the first release."""
    Base.metadata.create_all(engine)
    if engine.dialect.name == "sqlite":
        _migrate_generation_schema(engine)


def _migrate_generation_schema(engine: Engine) -> None:
    """Ensure newly introduced generation columns exist (simple SQLite migration)."""
    with engine.begin() as conn:
        result = conn.execute(text("PRAGMA table_info('generation')"))
        columns = {row[1] for row in result}
        required_columns = {
            "status": "ALTER TABLE generation ADD COLUMN status TEXT DEFAULT 'pending'",
            "updated_at": "ALTER TABLE generation ADD COLUMN updated_at DATETIME",
        }
        for column, ddl in required_columns.items():
            if column not in columns:
                conn.execute(text(ddl))
        conn.execute(
            text("UPDATE generation SET status = 'pending' WHERE status IS NULL OR status = ''")
        )
