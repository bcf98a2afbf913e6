"""
Database connection module: SQLite backend.

Provides connect/disconnect lifecycle and get_database() accessor.
The store layer wraps the returned database with typed operations.

Typical usage:
    from database import get_database
    db = get_database()
    row = await db.fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))
"""

import logging
from typing import Optional

from config import get_settings
from sqlite_db import SQLiteDatabase

logger = logging.getLogger(__name__)

# ============================================================
# Global database instance
# ============================================================
_database: Optional[SQLiteDatabase] = None


async def connect_db() -> None:
    """Initialize the SQLite database connection.

    Called once during application startup (main.py lifespan).
    Creates the database file if it doesn't exist.
    """
    global _database

    db_path = get_settings().sqlite_path
    logger.info(f"Connecting to SQLite database: {db_path}")

    _database = SQLiteDatabase(db_path)
    await _database.connect()

    logger.info("SQLite database connected successfully")


async def close_db() -> None:
    """Close the database connection gracefully.

    Called during application shutdown.
    """
    global _database
    if _database:
        await _database.close()
        _database = None
        logger.info("Database connection closed")


def get_database() -> SQLiteDatabase:
    """Get the database instance.

    Returns:
        The connected SQLiteDatabase.

    Raises:
        RuntimeError: If connect_db() hasn't been called yet.
    """
    if _database is None:
        raise RuntimeError("Database not initialized. Call connect_db() first.")
    return _database
