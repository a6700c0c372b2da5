"""Database session factory and configuration.

Provides database connectivity and session management for the webhook
work queue. SQLite URLs (used by the test-suite) get foreign key enforcement
and SAVEPOINT-safe transaction handling.
"""

from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from config import settings

DATABASE_URL = settings.DATABASE_URL


def configure_sqlite_engine(engine: Engine) -> Engine:
    """Enable FK enforcement and explicit BEGIN on a SQLite engine.

    pysqlite neither enforces foreign keys nor emits BEGIN before SAVEPOINT
    by default; both are needed for RESTRICT deletes and nested transactions.

    Args:
        engine: Engine bound to a sqlite URL

    Returns:
        Engine: The same engine, with listeners attached
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        # A shared (StaticPool) connection may already be inside a transaction
        if not conn.connection.driver_connection.in_transaction:
            conn.exec_driver_sql("BEGIN")

    return engine


# Create engine with connection pooling
# Pool settings only apply to PostgreSQL (not SQLite)
_engine_kwargs = {
    "pool_pre_ping": True,  # Verify connections before using
    "echo": False,
}

if not DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["pool_size"] = 5
    _engine_kwargs["max_overflow"] = 10

engine = create_engine(DATABASE_URL, **_engine_kwargs)

if DATABASE_URL.startswith("sqlite"):
    configure_sqlite_engine(engine)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """Dependency for FastAPI endpoints.

    Usage:
        @app.post("/webhooks")
        def receive(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
