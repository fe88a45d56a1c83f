"""
Pydantic schemas for the search-tracking endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TrackSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mobile_number: str | None = Field(default=None, alias="mobileNumber")

    @field_validator("mobile_number", mode="before")
    @classmethod
    def _only_strings(cls, value: Any) -> str | None:
        # Numbers, lists, objects... are treated as "no mobile number given".
        return value if isinstance(value, str) else None
