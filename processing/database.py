"""
Database connection and session management.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config.settings import settings
from processing.models import Base


def enable_sqlite_savepoints(sqlite_engine: Engine) -> Engine:
    """
    Let pysqlite honour SAVEPOINT / begin_nested().

    The driver otherwise defers BEGIN until the first DML statement, so a
    savepoint opened before any write would commit on release.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return sqlite_engine


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
)
if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db():
    """Initialize database tables."""
    if engine.dialect.name == "sqlite":
        (settings.project_root / "data").mkdir(exist_ok=True)
    Base.metadata.create_all(bind=engine)

