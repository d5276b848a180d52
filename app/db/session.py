"""
Database session management
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import ConcurrentModificationError
from app.db.base import Base


def configure_sqlite(engine: Engine) -> None:
    """
    Make pysqlite honour SAVEPOINT and foreign keys.

    The driver's own transaction handling skips BEGIN and breaks nested
    transactions, which notifications and year-end carry forward rely on.
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


if settings.DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    configure_sqlite(engine)
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        echo=False
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    Commit everything done in the block at once, or nothing.

    A version check that fails at flush or commit time (another request changed
    the same row first) surfaces as ConcurrentModificationError.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrentModificationError() from exc
    except Exception:
        db.rollback()
        raise


def create_tables() -> None:
    """Create all tables (SQLite / local use; other databases go through Alembic)"""
    import app.models  # noqa: F401  registers every model on Base.metadata
    Base.metadata.create_all(bind=engine)
