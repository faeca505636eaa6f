"""Pydantic schemas for ad frequency API responses."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, Field


class RemainingLimitsResponse(BaseModel):
    """Budget left for the visitor under the current limits."""

    session_remaining: int = Field(..., ge=0, description="Impressions left this session.")
    daily_remaining: int = Field(..., ge=0, description="Impressions left today.")
    cooldown_remaining: int = Field(
        ...,
        ge=0,
        description="Seconds until the cooldown clears (0 when no cooldown is active).",
    )


class EligibilityResponse(BaseModel):
    """Whether a sponsored slot may be shown right now."""

    can_show_ad: bool = Field(..., description="True if an impression is allowed now.")
    limits: RemainingLimitsResponse


class FrequencyStateResponse(BaseModel):
    """Diagnostic view of the persisted state, using its stored field names."""

    sessionImpressions: int
    dailyImpressions: int
    lastImpressionTime: int
    dailyResetDate: date


class SlotConfigResponse(BaseModel):
    """Attributes a presentation surface needs to render an ad slot."""

    placement: str
    client_id: str
    ad_slot: str
    ad_format: str | None = None
    ad_layout: str | None = None
    ad_layout_key: str | None = None
    full_width_responsive: bool | None = None
    style: dict[str, Any] = Field(default_factory=dict)


class SlotDecisionResponse(BaseModel):
    """Outcome of a gated slot request.

    When ``show`` is False the caller renders a neutral placeholder or nothing.
    """

    placement: str
    show: bool
    slot: SlotConfigResponse | None = None
    limits: RemainingLimitsResponse
