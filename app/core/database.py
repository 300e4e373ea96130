# =====================================================
# FILE: app/core/database.py
# Database Connection and Session Management
# =====================================================

from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import NullPool, QueuePool, StaticPool
from contextlib import contextmanager
from typing import Generator
from urllib.parse import quote_plus
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def build_database_url() -> str:
    """
    Explicit DATABASE_URL wins; otherwise build the MySQL URL from components.
    The password is URL-encoded to handle characters like @ # $.
    """
    if settings.DATABASE_URL:
        return settings.DATABASE_URL

    encoded_password = quote_plus(settings.DB_PASSWORD)
    return (
        f"mysql+pymysql://{settings.DB_USER}:{encoded_password}"
        f"@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
    )


DATABASE_URL = build_database_url()

engine_args = {
    "pool_pre_ping": settings.DB_POOL_PRE_PING,
    "echo": settings.DB_ECHO,
}

if DATABASE_URL.startswith("sqlite"):
    # Single shared connection so in-memory databases survive across sessions
    engine_args["connect_args"] = {"check_same_thread": False}
    engine_args["poolclass"] = StaticPool
    logger.info(f" Connecting to SQLite database: {DATABASE_URL}")
elif settings.DEBUG:
    engine_args["poolclass"] = NullPool
    logger.info(f" Connecting to: {settings.DB_USER}@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}")
else:
    engine_args["pool_size"] = settings.DB_POOL_SIZE
    engine_args["max_overflow"] = settings.DB_MAX_OVERFLOW
    engine_args["poolclass"] = QueuePool
    logger.info(f" Connecting to: {settings.DB_USER}@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}")

try:
    engine = create_engine(DATABASE_URL, **engine_args)
except Exception as e:
    logger.error(f" Failed to create database engine: {str(e)}")
    raise

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False
)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f" Database session error: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_session():
    """
    Context manager for database operations outside of FastAPI requests
    (scheduler jobs, maintenance scripts).
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception as e:
        logger.error(f" Database operation failed: {str(e)}")
        session.rollback()
        raise
    finally:
        session.close()


def test_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            logger.info(" Database connection test successful")
            return True
    except Exception as e:
        logger.error(f" Database connection test failed: {str(e)}")
        return False


def init_db():
    """
    Create all tables. Existing tables are kept.
    """
    try:
        import app.models  # noqa: F401  registers every model on Base.metadata

        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info(" Database tables created successfully")
    except Exception as e:
        logger.error(f" Failed to create database tables: {str(e)}")
        raise


def drop_all_tables():
    """
    Drop all tables from the database
    WARNING: This will delete all data!
    """
    try:
        import app.models  # noqa: F401

        Base.metadata.drop_all(bind=engine)
        logger.info(" All database tables dropped successfully")
    except Exception as e:
        logger.error(f" Failed to drop database tables: {str(e)}")
        raise
