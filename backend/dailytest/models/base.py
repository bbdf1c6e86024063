"""
Database base configuration for SQLAlchemy models.

This module uses SQLAlchemy 2.0 style with DeclarativeBase.

The engine is not a module-level global: a ``Database`` handle is built once
in the application lifespan, stored on ``app.state.database`` and disposed on
shutdown. Request handlers get a session through the ``get_db`` dependency,
which reads the handle from the application state.
"""

import logging
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    SQLAlchemy 2.0 declarative base class with type annotation support.
    """

    pass


class Database:
    """
    Storage-client handle owning an engine and its session factory.

    Lifecycle: construct once, hand out sessions for the life of the
    process, call ``dispose()`` on shutdown.
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        pool_pre_ping: bool = True,
        engine: Optional[Engine] = None,
    ):
        """
        Create the engine and session factory.

        Args:
            url: SQLAlchemy database URL
            echo: Log SQL statements
            pool_size: Number of connections to keep in the pool
            max_overflow: Extra connections allowed when the pool is exhausted
            pool_timeout: Seconds to wait for an available connection
            pool_recycle: Recycle connections after this many seconds
            pool_pre_ping: Test connections before handing them out
            engine: Pre-built engine (tests); pool options are ignored
        """
        self.url = url
        if engine is not None:
            self.engine = engine
        elif url.startswith("sqlite"):
            # SQLite (local runs): no connection pool sizing
            self.engine = create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool if ":memory:" in url else None,
            )
        else:
            self.engine = create_engine(
                url,
                echo=echo,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=pool_pre_ping,
            )
        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        """Build a handle from application settings."""
        return cls(
            settings.DATABASE_URL,
            echo=settings.DEBUG and settings.ENV == "development",
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_POOL_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_pre_ping=settings.DB_POOL_PRE_PING,
        )

    def session(self) -> Session:
        """Open a new session bound to this handle's engine."""
        return self.session_factory()

    def create_all(self) -> None:
        """Create any missing tables."""
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()
        logger.info("Database connection pool disposed")


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency function to get database session.

    Yields a session from the application's Database handle and ensures
    proper cleanup.
    """
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
