from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.core.auth import verify_api_key
from app.core.frequency import get_slot_service, get_visitor_policy
from app.schemas.ads import (
    EligibilityResponse,
    FrequencyStateResponse,
    RemainingLimitsResponse,
    SlotConfigResponse,
    SlotDecisionResponse,
)
from app.services.ad_frequency import AdFrequencyPolicy, RemainingLimits
from app.services.ad_slots import AdSlotService

router = APIRouter(
    prefix="/ads",
    tags=["Ads"],
    dependencies=[Depends(verify_api_key)],
)

VisitorPolicy = Annotated[AdFrequencyPolicy, Depends(get_visitor_policy)]


def _limits_response(limits: RemainingLimits) -> RemainingLimitsResponse:
    return RemainingLimitsResponse(
        session_remaining=limits.session_remaining,
        daily_remaining=limits.daily_remaining,
        cooldown_remaining=limits.cooldown_remaining,
    )


@router.get("/eligibility", response_model=EligibilityResponse)
async def get_eligibility(policy: VisitorPolicy) -> EligibilityResponse:
    """Check whether a sponsored slot may be shown to the visitor now.

    Read-only: a positive answer does not reserve an impression. Call
    ``POST /ads/impressions`` after the slot was actually rendered.
    """
    return EligibilityResponse(
        can_show_ad=policy.can_show_ad(),
        limits=_limits_response(policy.get_remaining_limits()),
    )


@router.post(
    "/impressions",
    response_model=RemainingLimitsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_impression(policy: VisitorPolicy) -> RemainingLimitsResponse:
    """Record that a sponsored slot was shown to the visitor."""
    policy.record_impression()
    return _limits_response(policy.get_remaining_limits())


@router.get("/limits", response_model=RemainingLimitsResponse)
async def get_limits(policy: VisitorPolicy) -> RemainingLimitsResponse:
    return _limits_response(policy.get_remaining_limits())


@router.post("/session/reset", response_model=RemainingLimitsResponse)
async def reset_session(policy: VisitorPolicy) -> RemainingLimitsResponse:
    """Start a new session for the visitor (daily counter and cooldown are kept)."""
    policy.reset_session()
    return _limits_response(policy.get_remaining_limits())


@router.get("/state", response_model=FrequencyStateResponse)
async def get_state(policy: VisitorPolicy) -> FrequencyStateResponse:
    """Diagnostic view of the visitor's stored counters."""
    return FrequencyStateResponse(**policy.state.model_dump(by_alias=True))


@router.post("/slots/{placement}", response_model=SlotDecisionResponse)
async def request_slot(
    placement: str,
    policy: VisitorPolicy,
    slot_service: Annotated[AdSlotService, Depends(get_slot_service)],
) -> SlotDecisionResponse:
    """Ask for a slot; the impression is recorded when the slot is granted.

    Returns ``show=false`` without slot attributes when a limit blocks it.
    Unknown placements return 404.
    """
    decision = slot_service.request_slot(policy, placement)

    slot = None
    if decision.slot is not None:
        slot = SlotConfigResponse(
            placement=decision.slot.placement,
            client_id=slot_service.client_id,
            ad_slot=decision.slot.ad_slot,
            ad_format=decision.slot.ad_format,
            ad_layout=decision.slot.ad_layout,
            ad_layout_key=decision.slot.ad_layout_key,
            full_width_responsive=decision.slot.full_width_responsive,
            style=dict(decision.slot.style),
        )

    return SlotDecisionResponse(
        placement=decision.placement,
        show=decision.show,
        slot=slot,
        limits=_limits_response(decision.limits),
    )
