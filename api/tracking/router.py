"""
Search-tracking API endpoints.
"""

from __future__ import annotations

from typing import Any, Callable, Coroutine

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute

from core.db import Database
from core.dependencies import get_database, get_settings
from core.settings import Settings

from . import schemas, service


class MobileNumberRoute(APIRoute):
    """
    Any body that cannot be read as `{"mobileNumber": ...}` is an invalid number.
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()

        async def handle(request: Request) -> Response:
            try:
                return await handler(request)
            except RequestValidationError as exc:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=service.INVALID_NUMBER_MESSAGE,
                ) from exc

        return handle


router = APIRouter(route_class=MobileNumberRoute)


@router.post("/api/track-search")
@router.post("/api/search-result")
async def track_search(
    request: schemas.TrackSearchRequest | None = None,
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> dict:
    """
    Count a search for `mobileNumber` and return its test result.

    `whatsappLink` is only present when the result is "Selected".
    """
    mobile_number = request.mobile_number if request is not None else None
    return await service.track_and_lookup(db, mobile_number, settings=settings)
