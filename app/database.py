"""Database connection management."""

import asyncpg
from asyncpg import Pool

from app.config import get_settings


class Database:
    """Database connection manager using asyncpg."""

    def __init__(self) -> None:
        self._pool: Pool | None = None

    async def connect(self) -> None:
        """Create database connection pool."""
        settings = get_settings()
        self._pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=2,
            max_size=10,
        )
        print("✅ Database connection pool created")

    async def disconnect(self) -> None:
        """Close database connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            print("✅ Database connection pool closed")

    @property
    def pool(self) -> Pool:
        """Get the connection pool."""
        if not self._pool:
            raise RuntimeError("Database not connected")
        return self._pool


# Global database instance
db = Database()
