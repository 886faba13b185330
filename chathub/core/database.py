"""
Database connection and session management.
"""
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from chathub.core.logging import get_logger

logger = get_logger(__name__)

# Create base class for models
Base = declarative_base()


class Database:
    """
    Owns the engine and session factory for one database URL.

    The instance is created by the application factory and stored on
    ``app.state.database``; nothing in the package keeps a module level
    engine.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def engine(self) -> Engine:
        """Get or create the database engine."""
        if self._engine is None:
            connect_args = {}
            if self.is_sqlite:
                connect_args["check_same_thread"] = False
                self._ensure_sqlite_directory()

            self._engine = create_engine(
                self.database_url,
                connect_args=connect_args,
                echo=self.echo,
                pool_pre_ping=True,
            )

            # Cascades from instances rely on SQLite enforcing foreign keys
            if self.is_sqlite:
                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()

            logger.info("Database engine created", extra={"extra_data": {"database_url": self.database_url}})

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine,
            )
        return self._session_factory

    def _ensure_sqlite_directory(self) -> None:
        # sqlite:///./path/to/db.db -> path/to/db.db
        db_path = self.database_url.replace("sqlite:///", "", 1)
        if not db_path or db_path == ":memory:" or db_path.startswith("sqlite"):
            return
        db_dir = Path(db_path).parent
        if not db_dir.exists():
            db_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created database directory: {db_dir}")

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Context manager yielding a session that is always closed."""
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def create_all(self) -> None:
        """Create tables for every registered model."""
        from chathub.models import chat, contact, instance, message, user  # noqa: F401 - Import to register models

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def check_connection(self) -> bool:
        """Check if database is reachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()


def get_database(request: Request) -> Database:
    """Dependency returning the application's Database."""
    return request.app.state.database


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency to get database session."""
    with get_database(request).session() as db:
        yield db
