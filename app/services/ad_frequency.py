"""Per-visitor frequency control for sponsored slots.

The policy decides whether a sponsored impression may be shown now, given
three limits:

- a cooldown between two consecutive impressions,
- a ceiling per session (sessions are bounded by explicit reset_session calls),
- a ceiling per calendar day.

State lives in a key-value store and is read once when the policy is built.
Every mutation is written through. The daily rollover is lazy: when the stored
date is not today, the whole state (session counter included) is treated as
zero and the corrected value is persisted on the next write.

Storage failures never reach the caller. A failed or corrupt read starts from
a fresh state for today; a failed write leaves the in-memory state
authoritative for the lifetime of the policy object.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from pydantic import ValidationError

from app.adapters.clock import Clock, SystemClock
from app.adapters.storage.base import AbstractKeyValueStore
from app.core.errors import StorageAppError
from app.schemas.frequency import FrequencyState

logger = logging.getLogger(__name__)

STORAGE_KEY = "ad_frequency_state"


@dataclass(frozen=True)
class FrequencyConfig:
    """Limits applied by the policy.

    Attributes:
        max_session_impressions: Impressions allowed between session resets.
        max_daily_impressions: Impressions allowed per calendar day.
        cooldown_seconds: Minimum seconds between consecutive impressions.
    """

    max_session_impressions: int = 12
    max_daily_impressions: int = 30
    cooldown_seconds: int = 60

    def __post_init__(self) -> None:
        if self.max_session_impressions < 0:
            raise ValueError("max_session_impressions must be >= 0")
        if self.max_daily_impressions < 0:
            raise ValueError("max_daily_impressions must be >= 0")
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be >= 0")


@dataclass(frozen=True)
class RemainingLimits:
    """Budget left under each limit.

    Attributes:
        session_remaining: Impressions left before the session ceiling.
        daily_remaining: Impressions left before the daily ceiling.
        cooldown_remaining: Whole seconds (rounded up) until the cooldown clears.
    """

    session_remaining: int
    daily_remaining: int
    cooldown_remaining: int


class AdFrequencyPolicy:
    """Frequency gate for one visitor's sponsored impressions.

    Callers must check ``can_show_ad()`` before rendering a slot and call
    ``record_impression()`` once the slot was shown. Recording without a prior
    check is not rejected; it simply counts.
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        config: FrequencyConfig | None = None,
        clock: Clock | None = None,
        storage_key: str = STORAGE_KEY,
    ) -> None:
        """Build the policy and load persisted state.

        Args:
            store: Key-value store holding the serialized state.
            config: Limits to enforce (defaults: 12 per session, 30 per day,
                60 second cooldown).
            clock: Time source; defaults to the UTC wall clock.
            storage_key: Key under which the state is persisted.
        """
        self._store = store
        self._config = config or FrequencyConfig()
        self._clock = clock or SystemClock()
        self._storage_key = storage_key
        self._state = self._load()

    @property
    def config(self) -> FrequencyConfig:
        return self._config

    @property
    def storage_key(self) -> str:
        return self._storage_key

    @property
    def state(self) -> FrequencyState:
        """Current state, normalized for date rollover."""
        return self._normalized()

    def _fresh_state(self) -> FrequencyState:
        return FrequencyState(daily_reset_date=self._clock.today())

    def _load(self) -> FrequencyState:
        try:
            raw = self._store.get(self._storage_key)
        except StorageAppError as exc:
            logger.warning(
                "ad_frequency.read_failed",
                extra={"error_code": exc.code, "error_message": exc.message},
            )
            return self._fresh_state()

        if raw is None:
            return self._fresh_state()

        try:
            state = FrequencyState.model_validate_json(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValidationError) as exc:
            logger.warning(
                "ad_frequency.state_corrupt",
                extra={"error_type": type(exc).__name__, "raw_bytes": len(raw)},
            )
            return self._fresh_state()

        today = self._clock.today()
        if state.daily_reset_date != today:
            logger.info(
                "ad_frequency.daily_rollover",
                extra={
                    "previous_date": state.daily_reset_date.isoformat(),
                    "today": today.isoformat(),
                },
            )
            return FrequencyState(daily_reset_date=today)
        return state

    def _normalized(self) -> FrequencyState:
        # Session counter is reset together with the daily one on rollover.
        today = self._clock.today()
        if self._state.daily_reset_date != today:
            return FrequencyState(daily_reset_date=today)
        return self._state

    def _commit(self, state: FrequencyState) -> None:
        self._state = state
        try:
            self._store.set(self._storage_key, state.to_json_bytes())
        except StorageAppError as exc:
            logger.warning(
                "ad_frequency.write_failed",
                extra={"error_code": exc.code, "error_message": exc.message},
            )

    def _cooldown_active(self, state: FrequencyState, now: int) -> bool:
        if state.last_impression_time <= 0:
            return False
        return now - state.last_impression_time < self._config.cooldown_seconds * 1000

    def can_show_ad(self) -> bool:
        """Return True if an impression may be shown now. Does not mutate state."""
        now = self._clock.now()
        state = self._normalized()

        if self._cooldown_active(state, now):
            return False
        if state.session_impressions >= self._config.max_session_impressions:
            return False
        if state.daily_impressions >= self._config.max_daily_impressions:
            return False
        return True

    def record_impression(self) -> None:
        """Count one shown impression and start the cooldown."""
        now = self._clock.now()
        state = self._normalized()
        self._commit(
            state.model_copy(
                update={
                    "session_impressions": state.session_impressions + 1,
                    "daily_impressions": state.daily_impressions + 1,
                    "last_impression_time": now,
                }
            )
        )

    def get_remaining_limits(self) -> RemainingLimits:
        now = self._clock.now()
        state = self._normalized()

        cooldown_remaining = 0
        if state.last_impression_time > 0:
            remaining_ms = self._config.cooldown_seconds * 1000 - (now - state.last_impression_time)
            cooldown_remaining = math.ceil(max(0, remaining_ms) / 1000)

        return RemainingLimits(
            session_remaining=max(0, self._config.max_session_impressions - state.session_impressions),
            daily_remaining=max(0, self._config.max_daily_impressions - state.daily_impressions),
            cooldown_remaining=cooldown_remaining,
        )

    def reset_session(self) -> None:
        """Zero the session counter. Daily counter and cooldown are untouched."""
        state = self._normalized()
        self._commit(state.model_copy(update={"session_impressions": 0}))
