"""
Admin reporting queries (raw SQL).
"""

from __future__ import annotations

from core.db import Database


async def list_searches(db: Database) -> list[dict]:
    """
    All tracked searches, most recent activity first. No pagination.
    """
    return await db.fetch_all(
        """
        SELECT id, mobile_number, click_count, name, last_updated
        FROM mobile_searches
        ORDER BY last_updated DESC, id DESC
        """
    )
