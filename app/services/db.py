"""
SQLAlchemy session and engine setup for the validation store
Connection pooling, pre-ping, and proper error handling
"""
import logging
from contextlib import contextmanager
from typing import Generator
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import DisconnectionError, OperationalError

from app.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url

_is_postgres = DATABASE_URL.startswith("postgresql")

logger.info(
    f"Database connection pool configuration: "
    f"pool_size={settings.db_pool_size}, "
    f"max_overflow={settings.db_max_overflow}"
)

_engine_kwargs = {
    "pool_pre_ping": settings.db_pool_pre_ping,
    "echo": settings.db_echo,
    "future": True,
}
if _is_postgres:
    _engine_kwargs.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        connect_args={
            "connect_timeout": settings.db_connect_args_connect_timeout,
            "options": "-c statement_timeout=30000"  # 30 second statement timeout
        },
    )

engine = create_engine(DATABASE_URL, **_engine_kwargs)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Prevent lazy loading issues after commit
)


@event.listens_for(engine, "connect")
def set_postgresql_settings(dbapi_conn, connection_record):
    """
    Set connection-level settings for PostgreSQL when a new connection is established.
    """
    if not _is_postgres:
        return
    try:
        with dbapi_conn.cursor() as cursor:
            cursor.execute("SET statement_timeout = '30s'")
            cursor.execute("SET idle_in_transaction_session_timeout = '60s'")
        logger.debug("PostgreSQL connection settings configured")
    except Exception as e:
        # Log but don't fail - connection might still be usable
        logger.warning(f"Failed to set PostgreSQL connection settings: {e}")


@event.listens_for(Engine, "invalidate")
def receive_invalidate(dbapi_conn, connection_record, exception):
    """
    Handle connection invalidation.

    With pool_pre_ping=True, SQLAlchemy will catch dead connections
    before use, so these warnings are mostly informational.
    """
    error_msg = str(exception).lower()
    if "server closed the connection" in error_msg or "connection unexpectedly" in error_msg:
        logger.debug(
            f"Connection closed by database server (expected): {type(exception).__name__}"
        )
    else:
        logger.warning(
            f"Connection invalidated: {exception}",
            exc_info=exception
        )


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get database session.

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.query(Item).all()
    """
    db: Session = SessionLocal()
    try:
        yield db
    except (OperationalError, DisconnectionError) as e:
        try:
            db.rollback()
        except Exception:
            # Ignore rollback errors on dead connections
            pass
        logger.error(f"Database connection error: {e}", exc_info=True)
        raise
    except Exception:
        # HTTPExceptions raised by routes land here too; rollback is harmless for them
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.warning(f"Failed to rollback session: {rollback_error}. Connection may be dead.")
        raise
    finally:
        try:
            db.close()
        except Exception as close_error:
            logger.debug(f"Error closing session (non-critical): {close_error}")


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions (for use outside FastAPI routes).

    Usage:
        with get_db_session() as db:
            record = ValidationStore.get_by_id(db, validation_id)
    """
    db: Session = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.warning(f"Failed to rollback session: {rollback_error}")
        logger.error(f"Database session error: {e}", exc_info=True)
        raise
    finally:
        db.close()


def test_connection() -> bool:
    """
    Test database connection health with retry logic for transient errors.

    Returns:
        True if connection is healthy, False otherwise
    """
    max_retries = 2
    for attempt in range(max_retries):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection test: SUCCESS")
            return True
        except (OperationalError, DisconnectionError) as e:
            error_msg = str(e).lower()
            is_transient = "server closed" in error_msg or "connection unexpectedly" in error_msg
            if is_transient and attempt < max_retries - 1:
                logger.debug(
                    f"Database connection test failed (transient, attempt {attempt + 1}/{max_retries}): {e}"
                )
                continue
            logger.error(f"Database connection test: FAILED - {e}")
            return False
        except Exception as e:
            logger.error(f"Database connection test: FAILED - {e}")
            return False

    return False


def close_all_connections():
    """
    Close all connections in the pool.
    Use this during application shutdown.
    """
    logger.info("Closing all database connections")
    engine.dispose()


def health_check() -> dict:
    """
    Database health check for the /health endpoint.

    Returns:
        Dict with health status
    """
    try:
        is_healthy = test_connection()
        return {
            "status": "healthy" if is_healthy else "unhealthy",
            "connection_test": is_healthy,
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)
        return {
            "status": "error",
            "error": str(e),
        }
