"""
Database setup and connection management for the shell registry.

This module handles:
- SQLAlchemy engine creation
- Session management
- Connection pooling configuration
- Database initialization
"""

from sqlalchemy import create_engine, event, inspect, pool, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError
import os
from typing import Generator, Optional
import logging

from registry.models import Base

logger = logging.getLogger(__name__)

import dotenv

dotenv.load_dotenv()

IN_MEMORY_SQLITE = "sqlite://"


class DatabaseConfig:
    """Configuration for database connections"""

    def __init__(self, connection_string: Optional[str] = None):
        self.connection_string = connection_string or os.getenv(
            "REGISTRY_DATABASE_URL", IN_MEMORY_SQLITE
        )

        # Connection pooling
        self.pool_size = int(os.getenv("DB_POOL_SIZE", "10"))
        self.max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "20"))
        self.pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "1500"))

        # Echo SQL for debugging (set False in production)
        self.echo = os.getenv("DB_ECHO", "False").lower() == "true"

        logger.info(f"Registry database config: pool_size={self.pool_size}, max_overflow={self.max_overflow}")

    @property
    def is_sqlite(self) -> bool:
        return self.connection_string.startswith("sqlite")


class DatabaseManager:
    """
    Manages database connections and session lifecycle.

    Usage:
        DatabaseManager.initialize()
        session = next(DatabaseManager.get_session())
    """

    _engine = None
    _SessionLocal = None
    _db_type = None

    @classmethod
    def initialize(cls, config: DatabaseConfig = None):
        """
        Initialize database engine and session factory, then create tables.

        In-memory SQLite shares one connection across threads so every
        request sees the same database.
        """
        if cls._engine is not None:
            logger.warning("DatabaseManager already initialized")
            return

        if config is None:
            config = DatabaseConfig()

        logger.info("Initializing registry database...")

        if config.is_sqlite:
            engine_kwargs = {
                "echo": config.echo,
                "connect_args": {"check_same_thread": False},
            }
            if config.connection_string in (IN_MEMORY_SQLITE, "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = pool.StaticPool
            cls._engine = create_engine(config.connection_string, **engine_kwargs)
            cls._db_type = "sqlite"
        else:
            cls._engine = create_engine(
                config.connection_string,
                poolclass=pool.QueuePool,
                pool_size=config.pool_size,
                max_overflow=config.max_overflow,
                pool_recycle=config.pool_recycle,
                pool_pre_ping=True,
                echo=config.echo,
            )
            cls._db_type = cls._engine.dialect.name

        if cls._db_type == "sqlite":
            _enable_sqlite_foreign_keys(cls._engine)

        cls._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=cls._engine,
            expire_on_commit=False
        )

        cls.create_tables()
        logger.info(f"✓ Registry database initialized ({cls._db_type})")

    @classmethod
    def create_tables(cls):
        """
        Create all tables if they don't exist (idempotent)
        """
        if cls._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        existing_tables = set(inspect(cls._engine).get_table_names())
        Base.metadata.create_all(bind=cls._engine, checkfirst=True)

        for table_name in Base.metadata.tables:
            if table_name in existing_tables:
                logger.info(f"✓ Table already exists: {table_name}")
            else:
                logger.info(f"✓ Created table: {table_name}")

    @classmethod
    def drop_tables(cls):
        """Drop shells, asset ids, grants and submodels. Test teardown only."""
        if cls._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        Base.metadata.drop_all(bind=cls._engine)
        logger.warning(f"Dropped registry tables: {sorted(Base.metadata.tables)}")

    @classmethod
    def dispose(cls):
        """Release the engine so initialize() can run again"""
        if cls._engine is not None:
            cls._engine.dispose()
        cls._engine = None
        cls._SessionLocal = None
        cls._db_type = None

    @classmethod
    def get_session(cls) -> Generator[Session, None, None]:
        """
        FastAPI dependency for getting a database session.

        Usage in FastAPI:

        @router.get("/shell-descriptors")
        async def list_shells(db: Session = Depends(DatabaseManager.get_session)):
            ...

        Yields:
            SQLAlchemy Session
        """
        if cls._SessionLocal is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        session = cls._SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

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


def _enable_sqlite_foreign_keys(engine):
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
