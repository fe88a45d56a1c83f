"""
Request-scoped dependencies shared by all routers.

The app factory stores one `Database` and one `Settings` on `app.state`;
handlers receive them explicitly instead of reaching for module globals.
"""

from __future__ import annotations

from fastapi import Request

from .db import Database
from .settings import Settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
