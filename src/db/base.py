"""
Database connection management using aiosqlite (SQLite)
"""
import asyncio
import re
import sqlite3
import time
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
from loguru import logger

from src.config import settings


class DatabaseIntegrityError(Exception):
    """Raised when a write violates a uniqueness or check constraint"""


def utc_now() -> datetime:
    """Current time in UTC"""
    return datetime.now(UTC)


def to_db_timestamp(value: datetime) -> str:
    """Serialize a datetime as the ISO-8601 UTC text stored in every timestamp column"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class ConnectionPool:
    """Simple connection pool for SQLite"""

    def __init__(self, db_path: str, pool_size: int, timeout: float):
        self.db_path = db_path
        self.pool_size = pool_size
        self.timeout = timeout
        self._pool: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=pool_size)
        self._created_connections = 0

    async def initialize(self):
        """Initialize the connection pool"""
        for _ in range(self.pool_size):
            conn = await self._create_connection()
            await self._pool.put(conn)

    async def _create_connection(self) -> aiosqlite.Connection:
        """Create a new database connection"""
        conn = await aiosqlite.connect(
            self.db_path,
            timeout=self.timeout
        )

        await conn.execute("PRAGMA foreign_keys = ON")
        # WAL lets readers proceed while a writer holds the lock
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.execute("PRAGMA synchronous = NORMAL")
        await conn.execute("PRAGMA cache_size = -64000")  # 64MB

        conn.row_factory = aiosqlite.Row

        self._created_connections += 1
        return conn

    async def acquire(self) -> aiosqlite.Connection:
        """Acquire a connection from the pool"""
        try:
            return await asyncio.wait_for(
                self._pool.get(),
                timeout=self.timeout
            )
        except TimeoutError as e:
            logger.error("Timeout waiting for database connection from pool")
            raise Exception("Database connection pool timeout") from e

    async def release(self, conn: aiosqlite.Connection):
        """Release a connection back to the pool"""
        try:
            self._pool.put_nowait(conn)
        except asyncio.QueueFull:
            await conn.close()
            logger.warning("Connection pool full, closing connection")

    async def close_all(self):
        """Close all connections in the pool"""
        while not self._pool.empty():
            conn = await self._pool.get()
            await conn.close()
        logger.info(f"Closed all {self._created_connections} database connections")


class Database:
    """Async SQLite database connection manager with pooling"""

    def __init__(self, db_path: str | None = None, pool_size: int | None = None):
        self.db_path: str = db_path or settings.database_path
        self.pool_size: int = pool_size or settings.database_pool_size
        self._pool: ConnectionPool | None = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Create database connection pool"""
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self._pool = ConnectionPool(
                db_path=self.db_path,
                pool_size=self.pool_size,
                timeout=settings.database_pool_timeout
            )
            await self._pool.initialize()

            logger.info(
                f"Connected to SQLite database: {self.db_path} "
                f"(pool size: {self.pool_size})"
            )
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

    async def disconnect(self) -> None:
        """Close all database connections"""
        if self._pool:
            await self._pool.close_all()
            self._pool = None
            logger.info("Database connection pool closed")

    async def apply_migrations(self, migrations_dir: str | None = None) -> list[str]:
        """Run every migration file in order; all statements are idempotent"""
        directory = Path(migrations_dir or settings.migrations_dir)
        migration_files = sorted(directory.glob("*.sql"))
        if not migration_files:
            logger.warning(f"No migration files found in {directory}")
            return []

        conn = await self._pool.acquire()
        try:
            for migration_file in migration_files:
                await conn.executescript(migration_file.read_text())
                logger.info(f"Applied migration {migration_file.name}")
            await conn.commit()
        finally:
            await self._pool.release(conn)

        return [f.name for f in migration_files]

    async def execute(self, query: str, *args) -> int:
        """Execute a write query and return the number of affected rows"""
        query = self._convert_query(query)
        conn = await self._pool.acquire()
        start_time = time.time()
        try:
            async with conn.execute(query, args) as cursor:
                await conn.commit()
                duration_ms = int((time.time() - start_time) * 1000)
                if duration_ms > 100:  # Log slow queries
                    logger.warning(f"Slow query ({duration_ms}ms): {query[:200]}")
                return cursor.rowcount
        except sqlite3.IntegrityError as e:
            await conn.rollback()
            logger.warning(f"Integrity error: {e}, Query: {query[:100]}")
            raise DatabaseIntegrityError(str(e)) from e
        except Exception as e:
            logger.error(f"Execute error: {e}, Query: {query[:100]}")
            raise
        finally:
            await self._pool.release(conn)

    async def fetch(self, query: str, *args) -> list[dict[str, Any]]:
        """Fetch multiple rows"""
        query = self._convert_query(query)
        conn = await self._pool.acquire()
        start_time = time.time()
        try:
            async with conn.execute(query, args) as cursor:
                rows = await cursor.fetchall()
                duration_ms = int((time.time() - start_time) * 1000)
                if duration_ms > 100:  # Log slow queries
                    logger.warning(f"Slow query ({duration_ms}ms, {len(rows)} rows): {query[:200]}")
                return [dict(row) for row in rows]
        except Exception as e:
            logger.error(f"Fetch error: {e}, Query: {query[:100]}")
            raise
        finally:
            await self._pool.release(conn)

    async def fetchone(self, query: str, *args) -> dict[str, Any] | None:
        """Fetch a single row"""
        query = self._convert_query(query)
        conn = await self._pool.acquire()
        start_time = time.time()
        try:
            async with conn.execute(query, args) as cursor:
                row = await cursor.fetchone()
                duration_ms = int((time.time() - start_time) * 1000)
                if duration_ms > 50:  # Log slow single-row queries
                    logger.warning(f"Slow query ({duration_ms}ms): {query[:200]}")
                return dict(row) if row else None
        except Exception as e:
            logger.error(f"Fetchone error: {e}, Query: {query[:100]}")
            raise
        finally:
            await self._pool.release(conn)

    async def fetchval(self, query: str, *args) -> Any:
        """Fetch a single value"""
        query = self._convert_query(query)
        conn = await self._pool.acquire()
        try:
            async with conn.execute(query, args) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else None
        except Exception as e:
            logger.error(f"Fetchval error: {e}, Query: {query[:100]}")
            raise
        finally:
            await self._pool.release(conn)

    def _convert_query(self, query: str) -> str:
        """Convert PostgreSQL-style placeholders and booleans to SQLite"""
        query = re.sub(r"\$\d+", "?", query)

        query = re.sub(r"\s+=\s+true\b", " = 1", query, flags=re.IGNORECASE)
        return re.sub(r"\s+=\s+false\b", " = 0", query, flags=re.IGNORECASE)

    def generate_uuid(self) -> str:
        """Generate a UUID for use as primary key"""
        return str(uuid.uuid4())

    async def health_check(self) -> dict:
        """Check database health"""
        try:
            if not self._pool:
                return {"status": "down", "error": "Connection pool not initialized"}

            start = time.time()
            await self.fetchval("SELECT 1")
            latency_ms = int((time.time() - start) * 1000)
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "down", "error": str(e)}
        else:
            return {"status": "up", "latency_ms": latency_ms}


# Global database instance
db = Database()


async def init_db():
    """Initialize database connection (called on startup)"""
    await db.connect()
    if settings.auto_migrate:
        await db.apply_migrations()


async def close_db():
    """Close database connection (called on shutdown)"""
    await db.disconnect()
