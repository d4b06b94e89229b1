import logging
from typing import Generator
from fastapi import Request
from sqlalchemy import create_engine, event, text, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def create_db_engine(database_url: str, debug: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine for the given URL.

    SQLite URLs (used by tests and local runs) share one connection across
    threads; everything else gets a pooled engine.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=debug
        )
    else:
        engine = create_engine(
            database_url,
            poolclass=QueuePool,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=300,
            echo=debug
        )

    # Database event listeners for monitoring
    @event.listens_for(engine, "connect")
    def receive_connect(dbapi_connection, connection_record):
        """Event listener for database connections"""
        logger.info("Database connection established")

    @event.listens_for(engine, "checkout")
    def receive_checkout(dbapi_connection, connection_record, connection_proxy):
        """Event listener for connection checkout"""
        logger.debug("Database connection checked out from pool")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine
    )


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Database dependency for FastAPI

    Yields:
        Session: Database session
    """
    db = request.app.state.session_factory()
    try:
        yield db
    except SQLAlchemyError as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine) -> bool:
    """
    Initialize database tables

    Returns:
        bool: True if successful, False otherwise
    """
    try:
        # Import all models here to ensure they are registered
        from ..models import task  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        return False


def check_db_connection(engine: Engine) -> bool:
    """
    Check database connectivity

    Returns:
        bool: True if connected, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.debug("Database connection check successful")
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
