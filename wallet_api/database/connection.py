"""
Database connection and session management
The Database object is built once by the app factory and shared via app.state
"""
from contextlib import contextmanager
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from typing import Generator, Optional
from threading import Lock
from wallet_api.observability.logging import get_logger
from wallet_api.utils.exceptions import DatabaseConnectionError

# Base class for ORM models
Base = declarative_base()

logger = get_logger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # Cascade deletes on users depend on this pragma
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the engine and session factory for one database URL.
    """

    def __init__(self):
        self._engine: Optional[Engine] = None
        self._SessionLocal: Optional[sessionmaker] = None
        self._initialized = False
        self._lock = Lock()

    def initialize(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 20
    ) -> None:
        """
        Initialize database connection.

        Args:
            database_url: SQLAlchemy connection string
            echo: Log SQL queries (default: False)
            pool_size: Number of connections to maintain (ignored for SQLite)
            max_overflow: Maximum overflow connections (ignored for SQLite)

        Raises:
            DatabaseConnectionError: If connection fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                if not database_url:
                    raise ValueError("database_url cannot be empty")

                is_sqlite = database_url.startswith("sqlite")
                if is_sqlite:
                    engine_kwargs = {"connect_args": {"check_same_thread": False}}
                    if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
                        # One shared connection so every session sees the same in-memory database
                        engine_kwargs["poolclass"] = StaticPool
                    else:
                        self._ensure_sqlite_directory(database_url)
                else:
                    engine_kwargs = {
                        "pool_pre_ping": True,
                        "pool_size": pool_size,
                        "max_overflow": max_overflow,
                    }

                self._engine = create_engine(database_url, echo=echo, **engine_kwargs)
                if is_sqlite:
                    event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)

                with self._engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                    conn.commit()

                self._SessionLocal = sessionmaker(
                    autocommit=False,
                    autoflush=False,
                    expire_on_commit=False,
                    bind=self._engine
                )

                self._initialized = True
                logger.info("Database initialized", extra={"dialect": self._engine.dialect.name})

            except OperationalError as e:
                raise DatabaseConnectionError(
                    f"Failed to connect to database: {str(e)}. Check your DATABASE_URL configuration.",
                    e
                ) from e
            except SQLAlchemyError as e:
                raise DatabaseConnectionError(
                    f"Database initialization error: {str(e)}",
                    e
                ) from e
            except Exception as e:
                raise DatabaseConnectionError(
                    f"Unexpected error initializing database: {str(e)}",
                    e
                ) from e

    @staticmethod
    def _ensure_sqlite_directory(database_url: str) -> None:
        import os
        path = database_url.split("///", 1)[-1]
        directory = os.path.dirname(path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)

    def get_session(self) -> Generator[Session, None, None]:
        """
        Get a database session (for use in FastAPI dependencies).

        Yields:
            Session: SQLAlchemy database session

        Raises:
            DatabaseConnectionError: If database is not initialized or connection fails
        """
        if not self._initialized or self._SessionLocal is None:
            raise DatabaseConnectionError(
                "Database not initialized. Call database.initialize() first."
            )

        db = self._SessionLocal()
        try:
            yield db
        except OperationalError as e:
            db.rollback()
            raise DatabaseConnectionError(
                f"Database connection lost: {str(e)}",
                e
            ) from e
        except SQLAlchemyError as e:
            db.rollback()
            raise DatabaseConnectionError(
                f"Database session error: {str(e)}",
                e
            ) from e
        finally:
            db.close()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Session for work outside a request (background tasks, scripts); commits on success."""
        if not self._initialized or self._SessionLocal is None:
            raise DatabaseConnectionError(
                "Database not initialized. Call database.initialize() first."
            )
        db = self._SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_tables(self):
        """Create all database tables defined in models"""
        if not self._initialized or self._engine is None:
            raise DatabaseConnectionError(
                "Database not initialized. Call database.initialize() first."
            )
        # Make sure every model is registered on Base.metadata
        from wallet_api.database import models  # noqa: F401
        Base.metadata.create_all(bind=self._engine)

    def get_engine(self) -> Engine:
        """Get the database engine (for advanced use cases)"""
        if not self._initialized or self._engine is None:
            raise DatabaseConnectionError(
                "Database not initialized. Call database.initialize() first."
            )
        return self._engine

    def is_initialized(self) -> bool:
        """Check if database is initialized"""
        return self._initialized

    def close(self):
        """Close all database connections"""
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._SessionLocal = None
            self._initialized = False
