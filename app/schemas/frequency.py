"""Persisted frequency state.

Serialized as JSON with camelCase field names so the stored value keeps the
format written by the browser client:

    {"sessionImpressions": 3, "dailyImpressions": 7,
     "lastImpressionTime": 1760650000000, "dailyResetDate": "2026-10-16"}
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class FrequencyState(BaseModel):
    """Impression counters for one visitor."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    session_impressions: int = Field(
        0,
        ge=0,
        alias="sessionImpressions",
        description="Impressions shown since the caller last reset the session.",
    )
    daily_impressions: int = Field(
        0,
        ge=0,
        alias="dailyImpressions",
        description="Impressions shown on daily_reset_date.",
    )
    last_impression_time: int = Field(
        0,
        ge=0,
        alias="lastImpressionTime",
        description="Epoch milliseconds of the last impression, 0 if none.",
    )
    daily_reset_date: date = Field(
        ...,
        alias="dailyResetDate",
        description="Calendar day the daily counter belongs to.",
    )

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")
