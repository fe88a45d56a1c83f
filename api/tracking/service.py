"""
Search-tracking business logic.

One request runs three independent steps:
- track: upsert the search counter (best-effort, failure only logged)
- lookup: fetch the test result (failure surfaced as 500, miss as 404)
- reconcile: copy the result's name onto the search row (best-effort)

There is no transaction across the steps; a tracked search without a
reconciled name is an accepted state.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from fastapi import HTTPException, status

from core.db import Database
from core.errors import STORAGE_UNAVAILABLE_MESSAGE
from core.settings import Settings

from . import repository

logger = logging.getLogger(__name__)


MOBILE_NUMBER_PATTERN = re.compile(r"[0-9]{10}")
SELECTED_RESULT = "Selected"

INVALID_NUMBER_MESSAGE = "Invalid mobile number"
NOT_FOUND_MESSAGE = "No test result found for this mobile number"


def is_valid_mobile_number(value: Any) -> bool:
    return isinstance(value, str) and MOBILE_NUMBER_PATTERN.fullmatch(value) is not None


def mask_number(value: str) -> str:
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]


def should_track(mobile_number: str | None, *, track_invalid_numbers: bool) -> bool:
    if not mobile_number:
        return False
    return track_invalid_numbers or is_valid_mobile_number(mobile_number)


def contact_link_for(test_result: dict, *, contact_link: str) -> str | None:
    """
    The contact link is only handed out for selected candidates.
    """
    if test_result.get("result") == SELECTED_RESULT:
        return contact_link
    return None


def build_lookup_response(test_result: dict, *, contact_link: str) -> dict:
    response: dict[str, Any] = {"success": True, "data": test_result}
    link = contact_link_for(test_result, contact_link=contact_link)
    if link is not None:
        response["whatsappLink"] = link
    return response


async def record_search(db: Database, mobile_number: str) -> dict | None:
    try:
        return await repository.upsert_search(db, mobile_number)
    except Exception:
        logger.exception("tracking_write_failed mobile_number=%s", mask_number(mobile_number))
        return None


async def lookup_test_result(db: Database, mobile_number: str) -> dict:
    try:
        row = await repository.get_test_result(db, mobile_number)
    except Exception as exc:
        logger.exception("lookup_failed mobile_number=%s", mask_number(mobile_number))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=STORAGE_UNAVAILABLE_MESSAGE,
        ) from exc

    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE)
    return row


async def reconcile_name(db: Database, *, mobile_number: str, name: str | None) -> bool:
    if not name:
        return False
    try:
        await repository.set_search_name(db, mobile_number=mobile_number, name=name)
    except Exception:
        logger.exception("reconciliation_write_failed mobile_number=%s", mask_number(mobile_number))
        return False
    return True


async def track_and_lookup(db: Database, mobile_number: str | None, *, settings: Settings) -> dict:
    if should_track(mobile_number, track_invalid_numbers=settings.track_invalid_numbers):
        await record_search(db, mobile_number)

    if not is_valid_mobile_number(mobile_number):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_NUMBER_MESSAGE)

    test_result = await lookup_test_result(db, mobile_number)
    await reconcile_name(db, mobile_number=mobile_number, name=test_result.get("name"))
    return build_lookup_response(test_result, contact_link=settings.contact_link)
