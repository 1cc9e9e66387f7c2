"""
Relational database setup shared by the credential store and the OAuth2 provider.

This module handles:
- Declarative base for every ORM model
- SQLAlchemy engine creation and pooling
- Session factory and the FastAPI session dependency
- Idempotent table creation
"""

import logging
import os
from datetime import datetime, timezone
from typing import Generator, Optional

import dotenv
from sqlalchemy import create_engine, inspect, pool, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

dotenv.load_dotenv()

Base = declarative_base()

DEFAULT_DATABASE_URL = "sqlite:///./debuggers_oauth2.db"


def utcnow() -> datetime:
    """Naive UTC datetime; every timestamp column stores UTC without tzinfo"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DatabaseConfig:
    """Configuration for database connections"""

    def __init__(self, url: Optional[str] = None):
        self.url = url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

        # Connection pooling
        self.pool_size = int(os.getenv("DB_POOL_SIZE", "10"))
        self.max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "20"))
        self.pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "1500"))

        # Echo SQL for debugging (set False in production)
        self.echo = os.getenv("DB_ECHO", "False").lower() == "true"

        logger.info(f"Database config: pool_size={self.pool_size}, max_overflow={self.max_overflow}")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_in_memory(self) -> bool:
        return self.is_sqlite and (":memory:" in self.url or self.url.rstrip("/") == "sqlite:")


class DatabaseManager:
    """
    Manages database connections and session lifecycle.

    Usage:
        DatabaseManager.initialize()
        session = DatabaseManager.new_session()
        try:
            ...
        finally:
            session.close()
    """

    _engine = None
    _SessionLocal = None

    @classmethod
    def initialize(cls, config: DatabaseConfig = None):
        """Initialize database engine and session factory, then create missing tables."""
        if cls._engine is not None:
            logger.warning("DatabaseManager already initialized")
            return

        if config is None:
            config = DatabaseConfig()

        logger.info("Initializing database...")
        cls._engine = cls._create_engine(config)
        cls._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=cls._engine,
            expire_on_commit=False
        )
        cls.create_tables()
        logger.info("✓ Database initialized successfully")

    @classmethod
    def _create_engine(cls, config: DatabaseConfig):
        """Create SQLAlchemy engine with pooling appropriate for the backend"""
        if config.is_in_memory:
            # One shared connection so every thread sees the same in-memory database
            return create_engine(
                "sqlite://",
                echo=config.echo,
                poolclass=pool.StaticPool,
                connect_args={"check_same_thread": False}
            )

        if config.is_sqlite:
            return create_engine(
                config.url,
                echo=config.echo,
                connect_args={"check_same_thread": False}
            )

        return create_engine(
            config.url,
            poolclass=pool.QueuePool,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_recycle=config.pool_recycle,
            pool_pre_ping=True,
            echo=config.echo
        )

    @classmethod
    def create_tables(cls):
        """Create all tables if they don't exist (IDEMPOTENT)"""
        if cls._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        # Registers every model on Base.metadata
        import auth.models  # noqa: F401
        import oauth2.models  # noqa: F401

        existing_tables = set(inspect(cls._engine).get_table_names())
        missing = [name for name in Base.metadata.tables if name not in existing_tables]

        Base.metadata.create_all(bind=cls._engine, checkfirst=True)

        for table_name in missing:
            logger.info(f"✓ Created table: {table_name}")
        logger.info("✓ Database tables ready")

    @classmethod
    def drop_tables(cls):
        """
        Drop all tables. USE WITH CAUTION (for testing only).
        """
        if cls._engine is None:
            raise RuntimeError("Database not initialized")

        logger.warning("DROPPING ALL TABLES - THIS IS DESTRUCTIVE")
        Base.metadata.drop_all(bind=cls._engine)

    @classmethod
    def dispose(cls):
        """Release the engine so initialize() can run again"""
        if cls._engine is not None:
            cls._engine.dispose()
        cls._engine = None
        cls._SessionLocal = None

    @classmethod
    def new_session(cls) -> Session:
        """Open a session the caller is responsible for closing"""
        if cls._SessionLocal is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return cls._SessionLocal()

    @classmethod
    def get_session(cls) -> Generator[Session, None, None]:
        """
        FastAPI dependency for getting a database session.

        Usage in FastAPI:

        @router.post("/token")
        async def token(db: Session = Depends(DatabaseManager.get_session)):
            ...

        Yields:
            SQLAlchemy Session
        """
        session = cls.new_session()
        try:
            yield session
            try:
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Commit failed: {e}")
                raise
        except Exception as e:
            try:
                session.rollback()
            except Exception as rollback_error:
                logger.error(f"Rollback failed: {rollback_error}")
            logger.debug(f"Session closed after error: {type(e).__name__}")
            raise
        finally:
            try:
                session.close()
            except Exception as close_error:
                logger.error(f"Failed to close session: {close_error}")

    @classmethod
    def health_check(cls) -> bool:
        """Check if database is healthy"""
        try:
            if cls._SessionLocal is None:
                return False

            session = cls._SessionLocal()
            try:
                session.execute(text("SELECT 1"))
            finally:
                session.close()
            return True
        except SQLAlchemyError as e:
            logger.error(f"❌ Database health check failed: {e}")
            return False


# ============ FastAPI Dependencies ============

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/endpoint")
        async def endpoint(db: Session = Depends(get_db)):
            ...
    """
    yield from DatabaseManager.get_session()
