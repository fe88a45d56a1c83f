"""
Admin API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from core.db import Database
from core.dependencies import get_database, get_settings
from core.settings import Settings

from . import service

router = APIRouter()


@router.get("/api/admin/searches")
async def list_searches(
    secret: str | None = Query(default=None),
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> dict:
    return await service.list_searches(db, secret, settings=settings)
