"""
Database connection module for marbot.

Provides an async PostgreSQL connection pool using asyncpg. The pool is
only created when DATABASE_URL is configured; otherwise the application
runs on the in-memory store.
"""

import logging
import os
import pathlib
from typing import Optional

import asyncpg

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "").strip()

_pool: Optional[asyncpg.Pool] = None


def is_configured() -> bool:
    return bool(DATABASE_URL)


async def init_db_pool(
    dsn: Optional[str] = None,
    min_size: int = 1,
    max_size: int = 5,
    command_timeout: float = 30.0,
) -> asyncpg.Pool:
    """Create the shared pool; later calls return the existing one."""
    global _pool

    if _pool is not None:
        logger.warning("Database pool already initialized")
        return _pool

    logger.info(f"Initializing database pool (min={min_size}, max={max_size})")

    try:
        _pool = await asyncpg.create_pool(
            dsn or DATABASE_URL,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
        )
        logger.info("Database pool initialized successfully")
        return _pool
    except Exception as e:
        logger.error(f"Failed to initialize database pool: {e}")
        raise


async def close_db_pool() -> None:
    global _pool

    if _pool is None:
        logger.warning("Database pool not initialized, nothing to close")
        return

    logger.info("Closing database pool")
    await _pool.close()
    _pool = None


def get_pool() -> asyncpg.Pool:
    """Shared pool; RuntimeError before `init_db_pool`."""
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_db_pool() first.")
    return _pool


async def execute(query: str, *args) -> str:
    return await get_pool().execute(query, *args)


async def fetch(query: str, *args) -> list:
    return await get_pool().fetch(query, *args)


async def fetchrow(query: str, *args):
    return await get_pool().fetchrow(query, *args)


async def fetchval(query: str, *args):
    return await get_pool().fetchval(query, *args)


async def init_schema() -> None:
    """Create tables from schema.sql if they do not exist yet."""
    schema_path = pathlib.Path(__file__).parent / "schema.sql"

    if not schema_path.exists():
        logger.error(f"Schema file not found: {schema_path}")
        raise FileNotFoundError(f"Schema file not found: {schema_path}")

    logger.info(f"Initializing database schema from {schema_path}")
    await get_pool().execute(schema_path.read_text())
    logger.info("Database schema initialized successfully")


async def health_check() -> dict:
    try:
        await fetchval("SELECT 1")
        return {
            "status": "healthy",
            "database": "connected",
            "pool_size": _pool.get_size() if _pool else 0,
            "pool_free": _pool.get_idle_size() if _pool else 0,
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": type(e).__name__,
        }
