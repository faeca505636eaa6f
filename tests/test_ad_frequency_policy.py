"""Unit tests for the per-visitor ad frequency policy."""

import json
import logging
from datetime import timedelta

import pytest

from app.adapters.storage.base import AbstractKeyValueStore
from app.core.errors import StorageAppError
from app.schemas.frequency import FrequencyState
from app.services.ad_frequency import (
    STORAGE_KEY,
    AdFrequencyPolicy,
    FrequencyConfig,
    RemainingLimits,
)


class FailingStore(AbstractKeyValueStore):
    """Store whose reads and/or writes always fail."""

    def __init__(self, *, fail_reads: bool = True, fail_writes: bool = True) -> None:
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        if self.fail_reads:
            raise StorageAppError(code="storage_read_failed", message="disk gone")
        return self.data.get(key)

    def set(self, key: str, value: bytes) -> None:
        if self.fail_writes:
            raise StorageAppError(code="storage_write_failed", message="quota exceeded")
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


def _persist(store, state: FrequencyState, key: str = STORAGE_KEY) -> None:
    store.set(key, state.to_json_bytes())


def _stored(store, key: str = STORAGE_KEY) -> dict:
    return json.loads(store.get(key))


class TestFrequencyConfig:
    def test_defaults(self) -> None:
        config = FrequencyConfig()
        assert config.max_session_impressions == 12
        assert config.max_daily_impressions == 30
        assert config.cooldown_seconds == 60

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_session_impressions": -1},
            {"max_daily_impressions": -1},
            {"cooldown_seconds": -5},
        ],
    )
    def test_rejects_negative_values(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            FrequencyConfig(**kwargs)


class TestInitialState:
    def test_fresh_store_yields_zero_state_for_today(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock)

        state = policy.state
        assert state.session_impressions == 0
        assert state.daily_impressions == 0
        assert state.last_impression_time == 0
        assert state.daily_reset_date == clock.today()
        assert policy.can_show_ad() is True

    def test_loads_persisted_state(self, store, clock) -> None:
        _persist(
            store,
            FrequencyState(
                session_impressions=3,
                daily_impressions=7,
                last_impression_time=clock.now() - 120_000,
                daily_reset_date=clock.today(),
            ),
        )

        policy = AdFrequencyPolicy(store, clock=clock)

        assert policy.state.session_impressions == 3
        assert policy.state.daily_impressions == 7

    def test_reads_browser_written_json(self, store, clock) -> None:
        raw = json.dumps(
            {
                "sessionImpressions": 2,
                "dailyImpressions": 5,
                "lastImpressionTime": clock.now() - 10_000,
                "dailyResetDate": clock.today().isoformat(),
            }
        ).encode()
        store.set(STORAGE_KEY, raw)

        policy = AdFrequencyPolicy(store, clock=clock)

        assert policy.state.daily_impressions == 5
        assert policy.can_show_ad() is False  # 10s into a 60s cooldown


class TestCanShowAd:
    def test_blocks_during_cooldown_and_allows_after(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock, config=FrequencyConfig(cooldown_seconds=60))
        policy.record_impression()

        assert policy.can_show_ad() is False
        clock.advance(59.999)
        assert policy.can_show_ad() is False
        clock.advance(0.001)
        assert policy.can_show_ad() is True

    def test_zero_cooldown_never_blocks(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock, config=FrequencyConfig(cooldown_seconds=0))
        policy.record_impression()

        assert policy.can_show_ad() is True

    def test_session_ceiling_blocks_regardless_of_elapsed_time(self, store, clock) -> None:
        config = FrequencyConfig(max_session_impressions=3, max_daily_impressions=100, cooldown_seconds=1)
        policy = AdFrequencyPolicy(store, clock=clock, config=config)

        for _ in range(3):
            policy.record_impression()
            clock.advance(2)

        assert policy.can_show_ad() is False
        clock.advance(3600)
        assert policy.can_show_ad() is False

        policy.reset_session()
        assert policy.can_show_ad() is True

    def test_daily_ceiling_blocks_until_rollover(self, store, clock) -> None:
        config = FrequencyConfig(max_session_impressions=100, max_daily_impressions=3, cooldown_seconds=1)
        policy = AdFrequencyPolicy(store, clock=clock, config=config)

        for _ in range(3):
            policy.record_impression()
            clock.advance(2)

        assert policy.can_show_ad() is False
        policy.reset_session()
        assert policy.can_show_ad() is False

        clock.advance_days(1)
        assert policy.can_show_ad() is True

    def test_zero_ceiling_never_allows(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock, config=FrequencyConfig(max_session_impressions=0))

        assert policy.can_show_ad() is False

    def test_does_not_write_to_store(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock)

        policy.can_show_ad()
        policy.get_remaining_limits()

        assert store.get(STORAGE_KEY) is None


class TestRecordImpression:
    def test_increments_counters_and_persists(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock)

        policy.record_impression()

        stored = _stored(store)
        assert stored == {
            "sessionImpressions": 1,
            "dailyImpressions": 1,
            "lastImpressionTime": clock.now(),
            "dailyResetDate": clock.today().isoformat(),
        }

    def test_records_without_checking(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock, config=FrequencyConfig(max_session_impressions=1))

        policy.record_impression()
        policy.record_impression()
        policy.record_impression()

        assert policy.state.session_impressions == 3
        assert policy.get_remaining_limits().session_remaining == 0

    def test_new_policy_sees_recorded_impressions(self, store, clock) -> None:
        AdFrequencyPolicy(store, clock=clock).record_impression()

        reloaded = AdFrequencyPolicy(store, clock=clock)

        assert reloaded.state.daily_impressions == 1
        assert reloaded.can_show_ad() is False


class TestDailyRollover:
    def test_stale_date_resets_everything_on_read(self, store, clock) -> None:
        _persist(
            store,
            FrequencyState(
                session_impressions=9,
                daily_impressions=30,
                last_impression_time=clock.now() - 1000,
                daily_reset_date=clock.yesterday(),
            ),
        )

        policy = AdFrequencyPolicy(store, clock=clock)

        state = policy.state
        assert state.session_impressions == 0
        assert state.daily_impressions == 0
        assert state.last_impression_time == 0
        assert state.daily_reset_date == clock.today()

    def test_read_does_not_rewrite_stale_value(self, store, clock) -> None:
        stale = FrequencyState(
            session_impressions=4,
            daily_impressions=4,
            last_impression_time=0,
            daily_reset_date=clock.yesterday(),
        )
        _persist(store, stale)

        policy = AdFrequencyPolicy(store, clock=clock)
        policy.can_show_ad()

        assert _stored(store)["dailyResetDate"] == clock.yesterday().isoformat()

    def test_next_write_persists_corrected_state(self, store, clock) -> None:
        _persist(
            store,
            FrequencyState(
                session_impressions=4,
                daily_impressions=20,
                last_impression_time=clock.now() - 5000,
                daily_reset_date=clock.yesterday(),
            ),
        )

        policy = AdFrequencyPolicy(store, clock=clock)
        policy.record_impression()

        stored = _stored(store)
        assert stored["sessionImpressions"] == 1
        assert stored["dailyImpressions"] == 1
        assert stored["dailyResetDate"] == clock.today().isoformat()

    def test_rollover_while_policy_is_alive(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock)
        for _ in range(5):
            policy.record_impression()
            clock.advance(61)

        clock.advance_days(1)

        state = policy.state
        assert state.session_impressions == 0
        assert state.daily_impressions == 0
        assert state.last_impression_time == 0

    def test_rollover_is_idempotent(self, store, clock) -> None:
        _persist(
            store,
            FrequencyState(
                session_impressions=2,
                daily_impressions=2,
                last_impression_time=0,
                daily_reset_date=clock.today() - timedelta(days=7),
            ),
        )
        policy = AdFrequencyPolicy(store, clock=clock)

        first = policy.state
        second = policy.state

        assert first == second
        assert second.daily_impressions == 0


class TestRemainingLimits:
    def test_arithmetic(self, store, clock) -> None:
        config = FrequencyConfig(max_session_impressions=5, max_daily_impressions=8, cooldown_seconds=60)
        policy = AdFrequencyPolicy(store, clock=clock, config=config)
        policy.record_impression()
        clock.advance(61)
        policy.record_impression()

        limits = policy.get_remaining_limits()

        assert limits == RemainingLimits(session_remaining=3, daily_remaining=6, cooldown_remaining=60)

    def test_never_negative(self, store, clock) -> None:
        config = FrequencyConfig(max_session_impressions=1, max_daily_impressions=1)
        policy = AdFrequencyPolicy(store, clock=clock, config=config)
        for _ in range(4):
            policy.record_impression()

        limits = policy.get_remaining_limits()

        assert limits.session_remaining == 0
        assert limits.daily_remaining == 0

    def test_cooldown_remaining_is_ceiling_rounded(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock, config=FrequencyConfig(cooldown_seconds=60))
        policy.record_impression()

        clock.advance(0.5)
        assert policy.get_remaining_limits().cooldown_remaining == 60
        clock.advance(58.6)
        assert policy.get_remaining_limits().cooldown_remaining == 1
        clock.advance(0.9)
        assert policy.get_remaining_limits().cooldown_remaining == 0

    def test_no_cooldown_before_first_impression(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock)

        assert policy.get_remaining_limits().cooldown_remaining == 0


class TestResetSession:
    def test_only_session_counter_is_cleared(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock)
        policy.record_impression()
        last = clock.now()

        policy.reset_session()

        stored = _stored(store)
        assert stored["sessionImpressions"] == 0
        assert stored["dailyImpressions"] == 1
        assert stored["lastImpressionTime"] == last
        assert policy.can_show_ad() is False  # cooldown still active


class TestScenarios:
    def test_cooldown_then_session_ceiling(self, store, clock) -> None:
        config = FrequencyConfig(max_session_impressions=2, max_daily_impressions=10, cooldown_seconds=60)
        policy = AdFrequencyPolicy(store, clock=clock, config=config)

        assert policy.can_show_ad() is True
        policy.record_impression()
        assert policy.can_show_ad() is False

        clock.advance(61)
        assert policy.can_show_ad() is True
        policy.record_impression()

        clock.advance(61)
        assert policy.can_show_ad() is False

    def test_rollover_clears_daily_ceiling(self, store, clock) -> None:
        _persist(
            store,
            FrequencyState(
                session_impressions=0,
                daily_impressions=30,
                last_impression_time=0,
                daily_reset_date=clock.yesterday(),
            ),
        )
        policy = AdFrequencyPolicy(store, clock=clock, config=FrequencyConfig(max_daily_impressions=30))

        assert policy.can_show_ad() is True

    def test_reset_session_lifts_session_ceiling(self, store, clock) -> None:
        _persist(
            store,
            FrequencyState(
                session_impressions=12,
                daily_impressions=12,
                last_impression_time=clock.now() - 3_600_000,
                daily_reset_date=clock.today(),
            ),
        )
        policy = AdFrequencyPolicy(store, clock=clock, config=FrequencyConfig(max_session_impressions=12))
        assert policy.can_show_ad() is False

        policy.reset_session()

        assert policy.state.session_impressions == 0
        assert policy.can_show_ad() is True


class TestStorageFailures:
    @pytest.mark.parametrize(
        "raw",
        [
            b"{not json",
            b"\xff\xfe\x00",
            b"[]",
            b'{"sessionImpressions": -1, "dailyImpressions": 0, '
            b'"lastImpressionTime": 0, "dailyResetDate": "2026-10-16"}',
            b'{"sessionImpressions": 1}',
        ],
    )
    def test_corrupt_value_falls_back_to_fresh_state(self, store, clock, raw, caplog) -> None:
        store.set(STORAGE_KEY, raw)

        with caplog.at_level(logging.WARNING, logger="app.services.ad_frequency"):
            policy = AdFrequencyPolicy(store, clock=clock)

        assert policy.state == FrequencyState(daily_reset_date=clock.today())
        assert policy.can_show_ad() is True
        assert any(r.getMessage() == "ad_frequency.state_corrupt" for r in caplog.records)

    def test_read_failure_falls_back_to_fresh_state(self, clock, caplog) -> None:
        failing = FailingStore(fail_reads=True, fail_writes=False)

        with caplog.at_level(logging.WARNING, logger="app.services.ad_frequency"):
            policy = AdFrequencyPolicy(failing, clock=clock)

        assert policy.state.daily_impressions == 0
        assert any(r.getMessage() == "ad_frequency.read_failed" for r in caplog.records)

    def test_write_failure_keeps_in_memory_state(self, clock, caplog) -> None:
        failing = FailingStore(fail_reads=False, fail_writes=True)
        policy = AdFrequencyPolicy(failing, clock=clock)

        with caplog.at_level(logging.WARNING, logger="app.services.ad_frequency"):
            policy.record_impression()

        assert policy.state.session_impressions == 1
        assert policy.can_show_ad() is False
        assert failing.data == {}
        assert any(r.getMessage() == "ad_frequency.write_failed" for r in caplog.records)

    def test_custom_storage_key(self, store, clock) -> None:
        policy = AdFrequencyPolicy(store, clock=clock, storage_key="ad_frequency_state:visitor-1")
        policy.record_impression()

        assert store.get(STORAGE_KEY) is None
        assert store.get("ad_frequency_state:visitor-1") is not None
