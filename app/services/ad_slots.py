"""Sponsored slot catalog and gated slot decisions.

Presentation surfaces ask for a slot by placement name. The service checks the
visitor's frequency policy and, when allowed, records the impression and hands
back the attributes needed to render the slot. When not allowed the caller
gets ``show=False`` and renders a neutral placeholder or nothing.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from app.core.errors import NotFoundAppError
from app.services.ad_frequency import AdFrequencyPolicy, RemainingLimits

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotConfig:
    """Static attributes of one placement."""

    placement: str
    ad_slot: str
    ad_format: str | None = None
    ad_layout: str | None = None
    ad_layout_key: str | None = None
    full_width_responsive: bool | None = None
    style: dict[str, Any] = field(default_factory=dict)


SLOT_CATALOG: dict[str, SlotConfig] = {
    "in_article": SlotConfig(
        placement="in_article",
        ad_slot="6521724398",
        ad_format="fluid",
        ad_layout="in-article",
        style={"display": "block", "textAlign": "center", "minHeight": "280px"},
    ),
    "display": SlotConfig(
        placement="display",
        ad_slot="3154909234",
        ad_format="auto",
        full_width_responsive=True,
        style={"display": "block", "minHeight": "250px"},
    ),
    "multiplex": SlotConfig(
        placement="multiplex",
        ad_slot="6159596154",
        ad_format="autorelaxed",
        style={"display": "block", "minHeight": "300px"},
    ),
    "sticky_sidebar": SlotConfig(
        placement="sticky_sidebar",
        ad_slot="3154909234",
        ad_format="auto",
        full_width_responsive=False,
        style={"display": "block", "minHeight": "600px"},
    ),
    "horizontal_banner": SlotConfig(
        placement="horizontal_banner",
        ad_slot="3154909234",
        ad_format="auto",
        full_width_responsive=True,
        style={"display": "block", "minHeight": "100px", "width": "100%", "maxWidth": "728px"},
    ),
    "in_feed": SlotConfig(
        placement="in_feed",
        ad_slot="6521724398",
        ad_format="fluid",
        ad_layout_key="-6t+ed+2i-1n-4w",
        style={"display": "block"},
    ),
}


@dataclass(frozen=True)
class SlotDecision:
    """Result of a slot request."""

    placement: str
    show: bool
    slot: SlotConfig | None
    limits: RemainingLimits


class AdSlotService:
    """Gate slot requests through a visitor's frequency policy."""

    def __init__(
        self,
        *,
        client_id: str,
        catalog: dict[str, SlotConfig] | None = None,
        lock: threading.RLock | None = None,
    ) -> None:
        self.client_id = client_id
        self._catalog = catalog if catalog is not None else SLOT_CATALOG
        self._lock = lock or threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def placements(self) -> list[str]:
        return sorted(self._catalog)

    def get_slot(self, placement: str) -> SlotConfig:
        """Look up a placement.

        Raises:
            NotFoundAppError: If the placement is not in the catalog.
        """
        slot = self._catalog.get(placement)
        if slot is None:
            raise NotFoundAppError(
                code="unknown_placement",
                message=f"Unknown ad placement: '{placement}'",
                details={"placement": placement},
            )
        return slot

    def request_slot(self, policy: AdFrequencyPolicy, placement: str) -> SlotDecision:
        """Check the policy and, if allowed, record the impression.

        The check and the record run under one lock so two concurrent requests
        for the same visitor cannot both pass the gate.
        """
        slot = self.get_slot(placement)

        with self._lock:
            allowed = policy.can_show_ad()
            if allowed:
                policy.record_impression()
            limits = policy.get_remaining_limits()

        if allowed:
            logger.info(
                "ad_slot.served",
                extra={
                    "placement": placement,
                    "session_remaining": limits.session_remaining,
                    "daily_remaining": limits.daily_remaining,
                },
            )
            return SlotDecision(placement=placement, show=True, slot=slot, limits=limits)

        logger.info(
            "ad_slot.suppressed",
            extra={
                "placement": placement,
                "session_remaining": limits.session_remaining,
                "daily_remaining": limits.daily_remaining,
                "cooldown_remaining_s": limits.cooldown_remaining,
            },
        )
        return SlotDecision(placement=placement, show=False, slot=None, limits=limits)
