#!/usr/bin/env python3
"""
Database migration runner for SQLite
Runs migration SQL files in order
"""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from loguru import logger  # noqa: E402

from src.config import settings  # noqa: E402
from src.db.base import db  # noqa: E402


async def run_migrations() -> int:
    """Apply every migration file and report what ran"""
    Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)

    await db.connect()
    try:
        applied = await db.apply_migrations()
    finally:
        await db.disconnect()

    if not applied:
        return 1

    logger.info(f"Database ready at {settings.database_path} ({len(applied)} migrations)")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run_migrations()))
