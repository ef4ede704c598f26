from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool, NullPool
from sqlalchemy import text
from fastapi import Request
from typing import AsyncGenerator, Optional
import logging

from talesy.config import Settings, settings as default_settings
from talesy.db.base import Base
from talesy.exceptions import TalesyError

logger = logging.getLogger(__name__)


class Database:
    """Store handle: one engine and its session factory.

    Built by the application factory and owned by the app lifespan; components
    receive it through ``app.state`` instead of importing a module-level engine.
    """

    def __init__(self, url: str, engine: Optional[AsyncEngine] = None, **engine_kwargs):
        self.url = url
        self.engine = engine or create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "Database":
        config = config or default_settings
        database_url = config.database_url

        if "sqlite" in database_url:
            # SQLite configuration for testing
            return cls(
                database_url,
                echo=config.DEBUG,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        if config.is_testing:
            return cls(database_url, echo=config.DEBUG, poolclass=NullPool)

        # PostgreSQL configuration for production/development
        return cls(
            database_url,
            echo=config.DEBUG,
            pool_size=config.DATABASE_POOL_SIZE,
            max_overflow=config.DATABASE_MAX_OVERFLOW,
            pool_pre_ping=True,
        )

    async def create_all(self) -> None:
        """Create all tables (idempotent)"""
        import talesy.models  # noqa: F401  registers every model on Base.metadata

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def ping(self) -> bool:
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database connections closed")


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except TalesyError:
            await session.rollback()
            raise
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise
