"""Frequency policy dependencies for FastAPI routes.

Wires the storage adapter, clock and policy registry into the HTTP layer.

- Routes depend on ``get_visitor_policy`` only; the backend behind it is
  chosen from settings.
- Visitors are identified by the ``X-Visitor-ID`` header, which the
  presentation surface generates once per browser profile.
- The registry is process-wide. Several workers each keep their own cached
  policies over a shared store, so simultaneous impressions from one visitor
  on different workers can overwrite each other (last write wins).
"""

from __future__ import annotations

import logging
import re
from typing import Annotated

from fastapi import Depends, Header

from app.adapters.clock import Clock, SystemClock, resolve_timezone
from app.adapters.storage.base import AbstractKeyValueStore
from app.adapters.storage.factory import create_key_value_store
from app.core.config import settings
from app.core.errors import ValidationAppError
from app.core.logging import hash_for_logging
from app.services.ad_frequency import AdFrequencyPolicy, FrequencyConfig
from app.services.ad_slots import AdSlotService
from app.utils.policy_cache import PolicyRegistry

logger = logging.getLogger(__name__)

VISITOR_ID_MAX_LENGTH = 128
_VISITOR_ID_RE = re.compile(r"[A-Za-z0-9_.\-]+")

_registry: PolicyRegistry | None = None
_registry_config: tuple | None = None
_slot_service: AdSlotService | None = None


def build_frequency_config() -> FrequencyConfig:
    return FrequencyConfig(
        max_session_impressions=settings.ads.max_session_impressions,
        max_daily_impressions=settings.ads.max_daily_impressions,
        cooldown_seconds=settings.ads.cooldown_seconds,
    )


def build_policy_registry(
    store: AbstractKeyValueStore,
    *,
    config: FrequencyConfig,
    clock: Clock,
) -> PolicyRegistry:
    """Create a registry whose policies share one store, config and clock."""

    def _factory(visitor_id: str) -> AdFrequencyPolicy:
        return AdFrequencyPolicy(
            store,
            config=config,
            clock=clock,
            storage_key=f"{settings.ads.storage_key}:{visitor_id}",
        )

    return PolicyRegistry(
        _factory,
        ttl_seconds=settings.ads.policy_cache_ttl_seconds,
        max_entries=settings.ads.policy_cache_max_entries,
    )


def get_policy_registry() -> PolicyRegistry:
    """Return the process-wide policy registry.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), it is rebuilt.
    """

    global _registry, _registry_config

    config = (
        settings.ads.max_session_impressions,
        settings.ads.max_daily_impressions,
        settings.ads.cooldown_seconds,
        settings.ads.storage_backend,
        settings.ads.storage_path,
        settings.ads.storage_key,
        settings.ads.timezone,
        settings.ads.policy_cache_ttl_seconds,
        settings.ads.policy_cache_max_entries,
    )

    if _registry is None or _registry_config != config:
        _registry = build_policy_registry(
            create_key_value_store(),
            config=build_frequency_config(),
            clock=SystemClock(resolve_timezone(settings.ads.timezone)),
        )
        _registry_config = config
        logger.info(
            "ad_frequency.registry_built",
            extra={
                "storage_backend": settings.ads.storage_backend,
                "max_session": settings.ads.max_session_impressions,
                "max_daily": settings.ads.max_daily_impressions,
                "cooldown_s": settings.ads.cooldown_seconds,
                "timezone": settings.ads.timezone,
            },
        )

    return _registry


def reset_policy_registry() -> None:
    """Forget the process-wide registry so the next request rebuilds it."""

    global _registry, _registry_config
    _registry = None
    _registry_config = None


def validate_visitor_id(visitor_id: str | None) -> str:
    """Check a visitor id for presence, length and allowed characters.

    Raises:
        ValidationAppError: If the id is missing or malformed.
    """
    if not visitor_id:
        raise ValidationAppError(
            code="missing_visitor_id",
            message="Missing visitor id. Provide X-Visitor-ID header.",
        )
    if len(visitor_id) > VISITOR_ID_MAX_LENGTH:
        raise ValidationAppError(
            code="invalid_visitor_id",
            message="Visitor id is too long",
            details={"max_length": VISITOR_ID_MAX_LENGTH, "actual_length": len(visitor_id)},
        )
    if not _VISITOR_ID_RE.fullmatch(visitor_id):
        raise ValidationAppError(
            code="invalid_visitor_id",
            message="Visitor id may only contain letters, digits, '.', '_' and '-'",
        )
    return visitor_id


async def get_visitor_policy(
    registry: Annotated[PolicyRegistry, Depends(get_policy_registry)],
    x_visitor_id: Annotated[str | None, Header(alias="X-Visitor-ID")] = None,
) -> AdFrequencyPolicy:
    """FastAPI dependency resolving the caller's frequency policy.

    Raises:
        ValidationAppError: 400 when the visitor header is missing or invalid.
    """

    visitor_id = validate_visitor_id(x_visitor_id)
    policy = registry.get_or_create(visitor_id)
    logger.debug(
        "ad_frequency.visitor_resolved",
        extra={"visitor_hash": hash_for_logging(visitor_id)},
    )
    return policy


def get_slot_service(
    registry: Annotated[PolicyRegistry, Depends(get_policy_registry)],
) -> AdSlotService:
    """Return the process-wide slot service, sharing the registry's lock."""

    global _slot_service

    if (
        _slot_service is None
        or _slot_service.client_id != settings.ads.client_id
        or _slot_service.lock is not registry.lock
    ):
        _slot_service = AdSlotService(client_id=settings.ads.client_id, lock=registry.lock)
    return _slot_service
