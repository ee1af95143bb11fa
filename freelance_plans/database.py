"""Database engine, session lifecycle and per-user admission locking.

Every store call runs in a session opened here. Connectivity failures from
the driver are re-raised as StorageUnavailableError; nothing is retried.
"""

import threading
import zlib
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, exc as sa_exc, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from freelance_plans.config import Config, get_config
from freelance_plans.logging_config import get_logger
from freelance_plans.models.tables import Base

logger = get_logger(__name__)

# Driver errors that mean "the store could not be reached or is busy",
# as opposed to constraint violations or programming errors.
_TRANSIENT_ERRORS = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.TimeoutError,
    sa_exc.DisconnectionError,
)

# Namespace for PostgreSQL advisory locks taken during admission control
ADMISSION_LOCK_NAMESPACE = zlib.crc32(b"freelance_plans.subscriptions") & 0x7FFFFFFF


class StorageUnavailableError(Exception):
    """Raised when the relational store cannot serve a request."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


def _configure_sqlite(engine: Engine, busy_timeout_seconds: float) -> None:
    """Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first write, which lets two admission
    units both read "no overlap" before either inserts. BEGIN IMMEDIATE
    serialises them instead.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_seconds * 1000)}")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Owns the SQLAlchemy engine and hands out transactional sessions."""

    def __init__(self, url: str, echo: bool = False, busy_timeout_seconds: float = 30.0):
        self.url = url
        self._is_sqlite = url.startswith("sqlite")

        engine_kwargs = {"echo": echo, "future": True}
        if self._is_sqlite:
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": busy_timeout_seconds,
            }
            if url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.engine = create_engine(url, **engine_kwargs)
        if self._is_sqlite:
            _configure_sqlite(self.engine, busy_timeout_seconds)

        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

        logger.info("database_initialized", dialect=self.engine.dialect.name)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    @contextmanager
    def session(self, existing: Optional[Session] = None) -> Iterator[Session]:
        """Open a session that commits on success and rolls back on error.

        Args:
            existing: Session of an enclosing unit of work. When given it is
                yielded as-is and the caller owns commit/rollback.

        Raises:
            StorageUnavailableError: On connectivity or lock-timeout failures
        """
        if existing is not None:
            yield existing
            return

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except _TRANSIENT_ERRORS as e:
            session.rollback()
            logger.error("storage_unavailable", error=str(e), error_type=type(e).__name__)
            raise StorageUnavailableError("Subscription storage is unavailable") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def admission(self, user_id: int) -> Iterator[Session]:
        """Open a transaction holding the per-user admission lock.

        PostgreSQL takes a transaction-scoped advisory lock keyed by user id.
        SQLite already holds the database write lock from BEGIN IMMEDIATE.
        """
        with self.session() as session:
            if self.dialect == "postgresql":
                session.execute(
                    text("SELECT pg_advisory_xact_lock(:namespace, :key)"),
                    {"namespace": ADMISSION_LOCK_NAMESPACE, "key": int(user_id)},
                )
            else:
                # Any statement opens the transaction, and with it BEGIN IMMEDIATE
                session.execute(text("SELECT 1"))
            logger.debug("admission_lock_acquired", user_id=user_id)
            yield session

    def ping(self) -> bool:
        """Return True if the store answers a trivial query."""
        try:
            with self.session() as session:
                session.execute(text("SELECT 1"))
            return True
        except StorageUnavailableError:
            return False

    def create_all(self) -> None:
        """Create all missing tables."""
        try:
            Base.metadata.create_all(self.engine)
        except _TRANSIENT_ERRORS as e:
            raise StorageUnavailableError("Could not create tables", operation="create_all") from e
        logger.info("database_tables_ready")

    def drop_all(self) -> None:
        """Drop all tables (tests only)."""
        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()


# Global database instance
_database_instance: Optional[Database] = None
_database_lock = threading.Lock()


def create_database(config: Optional[Config] = None) -> Database:
    """Build a Database from configuration."""
    settings = (config or get_config()).database
    return Database(
        url=settings.url,
        echo=settings.echo,
        busy_timeout_seconds=settings.busy_timeout_seconds,
    )


def get_database() -> Database:
    """Get global database instance (singleton).

    Returns:
        Database instance
    """
    global _database_instance
    if _database_instance is None:
        with _database_lock:
            if _database_instance is None:
                _database_instance = create_database()
    return _database_instance


def reset_database() -> None:
    """Dispose the global database so the next get_database() reconnects."""
    global _database_instance
    with _database_lock:
        if _database_instance is not None:
            _database_instance.dispose()
        _database_instance = None
