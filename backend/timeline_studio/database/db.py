"""
Database initialization.
"""

import aiosqlite
from pathlib import Path
from timeline_studio.config import settings
from timeline_studio.logging import get_logger

logger = get_logger('database')

DATABASE_PATH = Path(settings.DATABASE_PATH)
SCHEMA_PATH = Path(__file__).parent / "init_db.sql"


async def init_db(database_path: str | Path | None = None):
    """
    Initialize database with schema.

    :param database_path: Override for the configured database file
    :type database_path: str | Path | None
    :return: None
    :rtype: None
    """
    path = Path(database_path or DATABASE_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(path) as db:
        with open(SCHEMA_PATH) as f:
            await db.executescript(f.read())
        await db.commit()
        logger.info(f"Database initialized at {path}")
