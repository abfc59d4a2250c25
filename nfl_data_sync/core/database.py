"""
Database handle and session management.

The handle is constructed explicitly from settings by whichever process owns
it (the HTTP app or the scheduler) and passed to stores, the orchestrator and
the request layer. Nothing here creates an engine at import time.
"""
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from nfl_data_sync.core.config import Settings
from nfl_data_sync.core.logging import get_logger

logger = get_logger(__name__)


def _engine_for(url: str, echo: bool = False) -> Engine:
    """Create an engine with pooling suited to the backend."""
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads and sessions
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo,
            )
        return create_engine(url, connect_args={"check_same_thread": False}, echo=echo)

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,
    )


class Database:
    """
    Owned handle over one engine and its session factory.

    Usage:
        database = Database.from_settings(settings)
        database.create_collections()
        with database.session() as db:
            TeamRepository(db).find_all()
    """

    def __init__(self, url: str, name: str = "nfl_data", echo: bool = False):
        self.url = url
        self.name = name
        self.engine = _engine_for(url, echo=echo)
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.DATABASE_URL, name=settings.DATABASE_NAME, echo=settings.SQL_ECHO)

    def create_collections(self) -> None:
        """
        Create every collection table and its unique natural-key index.

        Raises:
            SQLAlchemyError: If the database is unreachable (fatal at start-up)
        """
        from nfl_data_sync.models.tables import Base

        # checkfirst=True will only create tables that don't exist
        Base.metadata.create_all(bind=self.engine, checkfirst=True)
        logger.info(
            f"Collections ready in {self.name}",
            extra={"tables": sorted(Base.metadata.tables)},
        )

    def new_session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that is always closed, rolling back on error."""
        db = self.session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def ping(self) -> bool:
        """Return True when a trivial round-trip to the database succeeds."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database ping failed: {e}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info(f"Database {self.name} connections released")


def open_database(settings: Settings, create: bool = True) -> Database:
    """
    Build the process-owned database handle, optionally creating collections.

    Args:
        settings: Application settings
        create: Whether to create missing collection tables

    Returns:
        Ready Database handle
    """
    database = Database.from_settings(settings)
    if create:
        database.create_collections()
    return database


def describe_url(url: Optional[str]) -> str:
    """Database URL with any password masked, for logs."""
    if not url or "@" not in url or "://" not in url:
        return url or ""
    scheme, rest = url.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
