"""
Admin business logic: shared-secret check plus the search report.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import HTTPException, status

from core.db import Database
from core.errors import STORAGE_UNAVAILABLE_MESSAGE
from core.settings import Settings

from . import repository

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "Unauthorized"


def is_authorized(provided_secret: str | None, admin_secret: str) -> bool:
    # An unset admin secret must never match an absent one.
    if not provided_secret or not admin_secret:
        return False
    return secrets.compare_digest(provided_secret.encode("utf-8"), admin_secret.encode("utf-8"))


async def list_searches(db: Database, secret: str | None, *, settings: Settings) -> dict:
    if not is_authorized(secret, settings.admin_secret):
        logger.warning("admin_unauthorized secret_provided=%s", bool(secret))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED_MESSAGE)

    try:
        rows = await repository.list_searches(db)
    except Exception as exc:
        logger.exception("admin_query_failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=STORAGE_UNAVAILABLE_MESSAGE,
        ) from exc

    return {"success": True, "data": rows, "total": len(rows)}
