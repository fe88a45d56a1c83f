"""
Startup schema bootstrap.

Tables and indexes are created with IF NOT EXISTS, so this is safe to run on
every boot. There is no migration framework; the single ALTER below upgrades
tables created before `mobile_searches.name` existed.
"""

from __future__ import annotations

import logging

from .db import Database

logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS mobile_searches (
      id SERIAL PRIMARY KEY,
      mobile_number VARCHAR(15) NOT NULL UNIQUE,
      click_count INTEGER NOT NULL DEFAULT 0,
      name VARCHAR(255),
      last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    ALTER TABLE mobile_searches
    ADD COLUMN IF NOT EXISTS name VARCHAR(255)
    """,
    """
    CREATE TABLE IF NOT EXISTS test_results (
      id SERIAL PRIMARY KEY,
      name VARCHAR(255),
      phone VARCHAR(15) NOT NULL UNIQUE,
      current_group VARCHAR(100),
      exam_date DATE,
      result VARCHAR(50)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_mobile_searches_mobile_number
    ON mobile_searches (mobile_number)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_mobile_searches_last_updated
    ON mobile_searches (last_updated DESC)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_test_results_phone
    ON test_results (phone)
    """,
)


async def init_schema(database: Database) -> bool:
    """
    Ensure both tables and their indexes exist.

    Never raises: a failure is logged and the service keeps starting.
    """
    try:
        for statement in SCHEMA_STATEMENTS:
            await database.execute(statement)
    except Exception:
        logger.exception("schema_init_failed")
        return False

    logger.info("schema_init_complete tables=mobile_searches,test_results")
    return True
