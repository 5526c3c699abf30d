"""Database package"""

from src.db.base import Database, DatabaseIntegrityError, db

__all__ = ["Database", "DatabaseIntegrityError", "db"]
