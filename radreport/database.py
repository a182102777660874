"""Accounting database connection pool and session management.

The engine (and its bounded connection pool) is built once by the
application factory at startup, stored on ``app.state`` and disposed at
shutdown. Request handlers receive a session through the ``get_db``
dependency, which holds one pooled connection for the lifetime of the
request and returns it on every exit path.
"""

import logging

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from radreport.config import Settings
from radreport.errors import DatabaseUnavailableError, PoolExhaustedError, ReportQueryError

logger = logging.getLogger(__name__)


def _build_engine(
    database_url: str,
    pool_size: int = 10,
    pool_timeout: int = 30,
    connect_timeout: int = 10,
):
    """Create a SQLAlchemy engine with a bounded connection pool.

    SQLite (development and tests) keeps the dialect's default pool; every
    other backend gets a fixed-size queue pool with no overflow, so callers
    beyond ``pool_size`` wait up to ``pool_timeout`` seconds for a free
    connection.
    """
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(
        database_url,
        connect_args={"connect_timeout": connect_timeout},
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
    )


def build_engine(settings: Settings):
    """Create the accounting engine described by the application settings."""
    return _build_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_timeout=settings.DB_CONNECT_TIMEOUT,
    )


def check_connection(engine) -> None:
    """Open one connection and run a trivial query.

    Raises:
        DatabaseUnavailableError: If the database cannot be reached.
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Failed to connect to the accounting database: %s", e)
        raise DatabaseUnavailableError(
            "Failed to connect to the accounting database", str(e)
        ) from e
    logger.info("Connected to the accounting database at %s", engine.url.render_as_string())


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request):
    """Dependency that checks out a pooled connection for one request.

    The connection is acquired eagerly so that a saturated pool is reported
    as ``PoolExhaustedError`` and a lost database as ``ReportQueryError``,
    both rendered as ``{error, details}``.
    """
    db = request.app.state.session_factory()
    try:
        try:
            db.connection()
        except PoolTimeoutError as e:
            raise PoolExhaustedError("Database connection pool exhausted", str(e)) from e
        except SQLAlchemyError as e:
            logger.error("Failed to acquire a database connection: %s", e)
            raise ReportQueryError("Database connection failed", str(e)) from e
        yield db
    finally:
        db.close()
