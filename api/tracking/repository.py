"""
Search-tracking persistence (raw SQL).

Every function is a single autonomous statement; callers decide which
failures are surfaced and which are only logged.
"""

from __future__ import annotations

from core.db import Database


async def upsert_search(db: Database, mobile_number: str) -> dict | None:
    """
    Insert a search row with click_count = 1, or increment the existing one.

    The increment is evaluated server-side in one statement, so concurrent
    requests for the same number never lose a count.
    """
    return await db.fetch_one(
        """
        INSERT INTO mobile_searches (mobile_number, click_count, name, last_updated)
        VALUES ($1, 1, NULL, CURRENT_TIMESTAMP)
        ON CONFLICT (mobile_number) DO UPDATE
        SET click_count = mobile_searches.click_count + 1,
            last_updated = CURRENT_TIMESTAMP
        RETURNING id, mobile_number, click_count, name, last_updated
        """,
        mobile_number,
    )


async def get_test_result(db: Database, phone: str) -> dict | None:
    return await db.fetch_one(
        """
        SELECT id, name, phone, current_group, exam_date, result
        FROM test_results
        WHERE phone = $1
        LIMIT 1
        """,
        phone,
    )


async def set_search_name(db: Database, *, mobile_number: str, name: str) -> None:
    await db.execute(
        """
        UPDATE mobile_searches
        SET name = $1
        WHERE mobile_number = $2
        """,
        name,
        mobile_number,
    )
