"""
Relational database utilities for async operations.
Handles connection, schema bootstrap and unit-of-work sessions.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import structlog
from sqlalchemy import event, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)

from .tables import Base, BookRow, LoanRow, UserRow

logger = structlog.get_logger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """
    Async SQLAlchemy manager for the lending store.
    Owns the engine and hands out one transactional session per operation.
    """

    def __init__(self, database_url: str, echo: bool = False):
        """
        Initialize database manager.

        Args:
            database_url: SQLAlchemy URL with an async driver
            echo: Log every emitted SQL statement
        """
        self.database_url = database_url
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    async def connect(self) -> None:
        """Create the engine and make sure the schema exists."""
        try:
            self.engine = create_async_engine(self.database_url, echo=self.echo)
            if self.is_sqlite:
                event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
            self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

            # Test connection
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

            await self._create_schema()
            logger.info("Successfully connected to database", url=self.engine.url.render_as_string())

        except SQLAlchemyError as e:
            logger.error("Failed to connect to database", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Disconnected from database")

    async def _create_schema(self) -> None:
        """
        Create tables, the unique email index and the partial unique
        index on open loans.
        """
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Successfully created database schema")

        except SQLAlchemyError as e:
            logger.error("Failed to create schema", error=str(e))
            raise

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session inside a transaction.

        Commits when the block exits normally and rolls back when it raises.
        """
        if self.session_factory is None:
            raise RuntimeError("Database is not connected")

        async with self.session_factory() as session:
            async with session.begin():
                yield session

    async def get_database_stats(self) -> Dict[str, int]:
        """
        Get row counts for the lending tables.

        Returns:
            Dictionary with users, books, loans and open loans counts
        """
        async with self.transaction() as session:
            users = await session.scalar(select(func.count()).select_from(UserRow))
            books = await session.scalar(select(func.count()).select_from(BookRow))
            loans = await session.scalar(select(func.count()).select_from(LoanRow))
            open_loans = await session.scalar(
                select(func.count()).select_from(LoanRow).where(LoanRow.return_date.is_(None))
            )

        return {
            "users": users,
            "books": books,
            "loans": loans,
            "open_loans": open_loans,
        }

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            stats = await self.get_database_stats()
            return {"status": "healthy", **stats}
        except (SQLAlchemyError, RuntimeError) as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
