from __future__ import annotations

import logging
from typing import Any, Sequence

import aiosqlite

from .services.base import BaseService

log = logging.getLogger("cabinet.database")


async def initialize_database(sqlite_path: str, stores: Sequence[BaseService[Any]]) -> None:
    """Initialize the database with all stores."""
    try:
        async with aiosqlite.connect(sqlite_path) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA synchronous=NORMAL")
            await db.execute("PRAGMA temp_store=MEMORY")
            await db.commit()

        log.info("Applied SQLite optimizations")

        for store in stores:
            await store.init()
            log.info("Initialized %s", store.__class__.__name__)

        log.info("Database initialization completed")

    except Exception as e:
        log.error("Failed to initialize database: %s", e)
        raise


async def get_database_info(sqlite_path: str) -> dict[str, Any]:
    """Get size and table information about the database."""
    async with aiosqlite.connect(sqlite_path) as db:
        cursor = await db.execute("PRAGMA page_count")
        page_count = (await cursor.fetchone())[0]

        cursor = await db.execute("PRAGMA page_size")
        page_size = (await cursor.fetchone())[0]

        cursor = await db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        tables = [row[0] for row in await cursor.fetchall()]

    return {
        "size_bytes": page_count * page_size,
        "page_count": page_count,
        "page_size": page_size,
        "tables": tables,
    }
