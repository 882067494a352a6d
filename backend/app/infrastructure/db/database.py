"""
Database Configuration for Fashion Studio

Async SQLAlchemy engine and session management.
Only handles database connection and session lifecycle; configured via
Settings or an explicit database URL.
"""

import re
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from urllib.parse import quote_plus

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy import text
from sqlmodel import SQLModel

from app.config.settings import settings


def to_async_url(url: str) -> str:
    """Convert a sync SQLAlchemy URL to its async driver equivalent.

    - postgresql:// and postgres:// -> postgresql+asyncpg://
    - sqlite:/// -> sqlite+aiosqlite:///
    - otherwise: returned unchanged
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


class DatabaseManager:
    """
    Manages async database connections and sessions.

    One instance owns one engine and its pool. The application shares a
    module-level instance (see get_db_manager); tests build their own
    against a throwaway database.
    """

    def __init__(self, database_url: Optional[str] = None):
        self._database_url = database_url
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        """Get or create async engine with connection pooling."""
        if self._engine is None:
            self._initialize_engine()
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get or create session factory."""
        if self._session_factory is None:
            self._initialize_engine()
        return self._session_factory

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def _initialize_engine(self) -> None:
        """Initialize async engine; pool options apply to server databases only."""
        database_url = to_async_url(self._database_url or self._get_database_url_from_supabase())

        if database_url.startswith("sqlite"):
            self._engine = create_async_engine(
                database_url,
                echo=settings.database_echo,
                connect_args={"timeout": 30},
            )
        else:
            self._engine = create_async_engine(
                database_url,
                echo=settings.database_echo,
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_timeout=settings.database_pool_timeout,
                pool_pre_ping=True,  # Verify connections before use
            )

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    def _get_database_url_from_supabase(self) -> str:
        """
        Get PostgreSQL connection URL.

        Uses DATABASE_URL if provided, otherwise derives it from
        SUPABASE_URL + SUPABASE_PASSWORD.
        """
        if settings.database_url:
            return settings.database_url

        if not settings.supabase_url or not settings.supabase_password:
            raise ValueError(
                "Either DATABASE_URL or (SUPABASE_URL + SUPABASE_PASSWORD) is required. "
                "Add SUPABASE_PASSWORD to your .env file."
            )

        # Extract project reference from Supabase URL
        match = re.match(r'https?://([^.]+)\.supabase\.co', settings.supabase_url)
        if not match:
            raise ValueError(f"Invalid SUPABASE_URL format: {settings.supabase_url}")

        project_ref = match.group(1)
        password = quote_plus(settings.supabase_password)

        return (
            f"postgresql+asyncpg://postgres:{password}"
            f"@db.{project_ref}.supabase.co:5432/postgres"
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create all tables from SQLModel metadata."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def close(self) -> None:
        """Close engine and dispose of connection pool."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None


# Global instance (lazy initialization)
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Get or create the database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database sessions outside FastAPI requests.

    Usage:
        async with get_session_context() as session:
            result = await session.execute(query)
    """
    async with get_db_manager().session() as session:
        yield session


async def init_db() -> None:
    """Initialize database connection pool (called on app startup)."""
    async with get_db_manager().session_factory() as session:
        await session.execute(text("SELECT 1"))


async def close_db() -> None:
    """Close database connection pool (called on app shutdown)."""
    await get_db_manager().close()
