"""
Fixtures for integration tests against a real SQLite file
"""
import pytest_asyncio

from src.config import settings
from src.db.base import Database


@pytest_asyncio.fixture
async def database(tmp_path):
    """Fresh migrated database per test"""
    database = Database(db_path=str(tmp_path / "integration.db"), pool_size=2)
    await database.connect()
    await database.apply_migrations(settings.migrations_dir)
    yield database
    await database.disconnect()
