"""
Database configuration and utilities.
"""
import logging
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.sql.elements import TextClause

from email_platform.core.config import Settings
from email_platform.models import Base

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the async engine (connection pool) and session factory.

    One instance is created per application in ``create_app`` and kept on
    ``app.state.database``.
    """

    def __init__(
        self,
        url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        echo: bool = False,
    ):
        engine_kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=3600,
            )

        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            echo=settings.DB_ECHO,
        )

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session for one request.
        Anything left uncommitted when the request fails is rolled back.
        """
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection failed: {str(e)}")
            return False

    async def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    async def execute(
        self,
        query: Union[str, TextClause],
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run a parameterized SQL statement and return the rows as dictionaries.
        Prefer the ORM; this is for ad hoc reporting queries.
        """
        statement = text(query) if isinstance(query, str) else query
        async with self.session_factory() as session:
            result = await session.execute(statement, params or {})
            if not result.returns_rows:
                await session.commit()
                return []
            return [dict(row._mapping) for row in result.fetchall()]

    async def disconnect(self) -> None:
        await self.engine.dispose()
        logger.info("Database connections closed")
