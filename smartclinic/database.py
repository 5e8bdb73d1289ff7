"""
Database engine initialisation and schema creation.
"""

import sys
from typing import List, Optional

from sqlalchemy import create_engine, event, inspect, text

from smartclinic.config import get_env
from smartclinic.schema import metadata


def enable_sqlite_foreign_keys(engine) -> None:
    """SQLite ignores FOREIGN KEY clauses (and their ON DELETE actions) unless asked per connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _foreign_keys_on(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_engine(db_uri: Optional[str] = None):
    """Create a SQLAlchemy engine and verify the connection."""
    db_uri = db_uri or get_env("DB_URI")
    engine = create_engine(db_uri, echo=False, future=True)
    enable_sqlite_foreign_keys(engine)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


def init_schema(engine) -> List[str]:
    """Create any missing clinic tables and return the names that were added."""
    existing = set(inspect(engine).get_table_names())
    metadata.create_all(engine)
    created = sorted(set(metadata.tables) - existing)
    if created:
        print(f"[init] Created tables: {', '.join(created)}")
    return created


def check_connection(engine) -> bool:
    """True when a trivial query succeeds."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        print(f"[health] Database check failed: {e}", file=sys.stderr)
        return False
