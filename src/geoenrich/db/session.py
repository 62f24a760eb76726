"""
Database Session Management

Provides database connection pooling and session management for the PostGIS
spatial store. Engines are built explicitly from settings so nothing connects
at import time.
"""
import time
from contextlib import contextmanager
from functools import wraps
from typing import Callable, Generator

from sqlalchemy import create_engine, event, exc, pool, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config.settings import Settings
from src.geoenrich.utils.logger import get_logger

logger = get_logger(__name__)


def create_db_engine(config: Settings) -> Engine:
    """
    Create database engine with connection pooling.

    Args:
        config: Settings holding database_url and pool parameters

    Returns:
        Configured SQLAlchemy engine
    """
    engine = create_engine(
        config.database_url,
        pool_size=config.database_pool_size,
        max_overflow=config.database_max_overflow,
        pool_timeout=config.database_pool_timeout,
        pool_recycle=config.database_pool_recycle,
        pool_pre_ping=True,  # Verify connections before using
        echo=config.database_echo,  # Log SQL queries if enabled
    )

    @event.listens_for(engine, "connect")
    def receive_connect(dbapi_conn, connection_record):
        """
        Event listener for new database connections.

        Logs connection establishment.
        """
        logger.debug("database_connection_established")

    @event.listens_for(engine, "checkout")
    def receive_checkout(dbapi_conn, connection_record, connection_proxy):
        """
        Event listener for connection checkout from pool.
        """
        logger.debug("database_connection_checkout")

    logger.info("database_engine_created", pool_size=config.database_pool_size)
    return engine


@event.listens_for(pool.Pool, "invalidate")
def receive_invalidate(dbapi_conn, connection_record, exception):
    """
    Event listener for connection invalidation.

    Logs when a connection is marked as invalid and removed from pool.
    """
    logger.warning(
        "database_connection_invalidated",
        exception=str(exception) if exception else None
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to an engine."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False
    )


@contextmanager
def session_scope(session_factory: Callable[[], Session]) -> Generator[Session, None, None]:
    """
    Get database session with automatic cleanup.

    The spatial store is read-only, so sessions are rolled back rather than
    committed when the block exits.

    Usage:
        with session_scope(factory) as session:
            rows = session.execute(stmt).all()

    Yields:
        Database session

    Raises:
        SQLAlchemyError: Re-raised after rollback
    """
    session = session_factory()
    try:
        logger.debug("database_session_created")
        yield session
    except exc.SQLAlchemyError as e:
        logger.error(
            "database_session_rollback",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    finally:
        session.rollback()
        session.close()
        logger.debug("database_session_closed")


def health_check(session_factory: Callable[[], Session]) -> bool:
    """
    Check database connection health.

    Returns:
        True if database is accessible, False otherwise
    """
    try:
        with session_scope(session_factory) as session:
            session.execute(text("SELECT 1"))
            logger.info("database_health_check_success")
            return True
    except exc.SQLAlchemyError as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        return False


def close_connections(engine: Engine):
    """
    Close all database connections and dispose of the engine.

    Should be called on application shutdown.
    """
    logger.info("closing_database_connections")
    engine.dispose()
    logger.info("database_connections_closed")


# Retry decorator for transient database errors
def with_retry(max_retries: int = 3, retry_delay: float = 1):
    """
    Decorator to retry database operations on transient failures.

    Args:
        max_retries: Maximum number of attempts
        retry_delay: Base delay between attempts in seconds, grows linearly

    Usage:
        @with_retry(max_retries=3)
        def my_database_operation(session):
            # Perform operation
            pass
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except (exc.OperationalError, exc.DisconnectionError) as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        logger.warning(
                            "database_operation_retry",
                            attempt=attempt + 1,
                            max_retries=max_retries,
                            error=str(e)
                        )
                        time.sleep(retry_delay * (attempt + 1))
                    else:
                        logger.error(
                            "database_operation_failed_after_retries",
                            max_retries=max_retries,
                            error=str(e)
                        )

            raise last_exception

        return wrapper
    return decorator
