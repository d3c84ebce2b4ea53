"""Tests for the key pool components: KeyStore, HealthTracker, KeySelector, KeyPool."""

from __future__ import annotations

import threading

import pytest

from keyproxy.domain.exceptions import AuthorisationError
from keyproxy.shared.keypool import (
    DEFAULT_COOLDOWN_MS,
    FAILURE_THRESHOLD,
    HealthTracker,
    KeyPool,
    KeySelector,
    KeyStore,
    mask_key,
)


# ═══════════════════════════════════════════════════════════════
#  KeyStore
# ═══════════════════════════════════════════════════════════════
class TestKeyStore:
    def test_deduplicates(self) -> None:
        store = KeyStore.load(["k1", "k1", "k2"])
        assert store.count() == 2
        assert store.credentials == ("k1", "k2")

    def test_filters_empty_and_missing(self) -> None:
        store = KeyStore.load([None, "", "   ", "alpha", None, "beta"])
        assert store.credentials == ("alpha", "beta")

    def test_preserves_first_seen_order(self) -> None:
        store = KeyStore.load(["c", "a", "b", "a", "c"])
        assert list(store) == ["c", "a", "b"]

    def test_empty_is_not_an_error(self) -> None:
        store = KeyStore.load([None, ""])
        assert store.count() == 0
        assert len(store) == 0

    def test_strips_whitespace(self) -> None:
        store = KeyStore.load([" k1 ", "k1"])
        assert store.credentials == ("k1",)
        assert "k1" in store


# ═══════════════════════════════════════════════════════════════
#  HealthTracker
# ═══════════════════════════════════════════════════════════════
class TestHealthTracker:
    def test_starts_healthy(self, clock) -> None:
        tracker = HealthTracker(["k1"], clock=clock)
        assert tracker.is_healthy("k1") is True
        h = tracker.get("k1")
        assert h is not None
        assert h.consecutive_failures == 0
        assert h.cooldown_until == 0

    def test_two_failures_do_not_trip(self, clock) -> None:
        tracker = HealthTracker(["k1"], clock=clock)
        tracker.report_failure("k1")
        tracker.report_failure("k1")
        assert tracker.is_healthy("k1") is True
        assert tracker.get("k1").consecutive_failures == 2
        assert tracker.get("k1").cooldown_until == 0

    def test_threshold_trips_cooldown(self, clock) -> None:
        tracker = HealthTracker(["k1"], clock=clock)
        for _ in range(FAILURE_THRESHOLD):
            tracker.report_failure("k1")
        assert tracker.is_healthy("k1") is False
        assert tracker.get("k1").cooldown_until == clock.now + DEFAULT_COOLDOWN_MS

    def test_cooldown_window_boundaries(self, clock) -> None:
        tracker = HealthTracker(["k1"], clock=clock)
        t = clock.now
        for _ in range(3):
            tracker.report_failure("k1")
        assert tracker.is_healthy("k1", t + 599_999) is False
        assert tracker.is_healthy("k1", t + 600_000) is True
        assert tracker.is_healthy("k1", t + 600_001) is True

    def test_caller_cooldown_overrides_default(self, clock) -> None:
        tracker = HealthTracker(["k1"], clock=clock)
        for _ in range(3):
            tracker.report_failure("k1", cooldown_ms=60_000)
        assert tracker.get("k1").cooldown_until == clock.now + 60_000
        clock.advance(60_001)
        assert tracker.is_healthy("k1") is True

    def test_further_failures_extend_cooldown(self, clock) -> None:
        tracker = HealthTracker(["k1"], clock=clock)
        for _ in range(3):
            tracker.report_failure("k1")
        clock.advance(1_000)
        tracker.report_failure("k1")
        assert tracker.get("k1").consecutive_failures == 4
        assert tracker.get("k1").cooldown_until == clock.now + DEFAULT_COOLDOWN_MS

    def test_success_rehabilitates_mid_cooldown(self, clock) -> None:
        tracker = HealthTracker(["k1"], clock=clock)
        for _ in range(3):
            tracker.report_failure("k1")
        assert tracker.is_healthy("k1") is False

        tracker.report_success("k1")
        h = tracker.get("k1")
        assert h.consecutive_failures == 0
        assert h.cooldown_until == 0
        assert h.total_successes == 1
        assert tracker.is_healthy("k1") is True

    def test_success_resets_failure_streak(self, clock) -> None:
        tracker = HealthTracker(["k1"], clock=clock)
        tracker.report_failure("k1")
        tracker.report_failure("k1")
        tracker.report_success("k1")
        tracker.report_failure("k1")
        tracker.report_failure("k1")
        assert tracker.is_healthy("k1") is True

    def test_unknown_credential_is_noop(self, clock) -> None:
        tracker = HealthTracker(["k1"], clock=clock)
        tracker.report_failure("nope")
        tracker.report_success("nope")
        tracker.record_attempt("nope")
        assert tracker.get("nope") is None
        assert tracker.get("k1").total_attempts == 0

    def test_snapshot_masks_keys(self, clock) -> None:
        tracker = HealthTracker(["sk-live-abcdef1234", "abc"], clock=clock)
        snap = tracker.snapshot()
        assert [s.masked_key for s in snap] == ["...1234", "****"]
        for s in snap:
            assert "sk-live" not in s.masked_key

    def test_snapshot_reports_cooldown(self, clock) -> None:
        tracker = HealthTracker(["key-aaaa", "key-bbbb"], clock=clock)
        tracker.record_attempt("key-aaaa")
        for _ in range(3):
            tracker.report_failure("key-aaaa")
        clock.advance(1_500)

        cooling, healthy = tracker.snapshot()
        assert cooling.is_cooling is True
        assert cooling.consecutive_failures == 3
        assert cooling.total_attempts == 1
        assert cooling.cooldown_remaining_seconds == 599  # ceil(598.5)
        assert healthy.is_cooling is False
        assert healthy.cooldown_remaining_seconds == 0

    def test_snapshot_to_dict(self, clock) -> None:
        tracker = HealthTracker(["key-aaaa"], clock=clock)
        tracker.report_success("key-aaaa")
        assert tracker.snapshot()[0].to_dict() == {
            "key": "...aaaa",
            "total_attempts": 0,
            "total_successes": 1,
            "consecutive_failures": 0,
            "is_cooling": False,
            "cooldown_remaining_seconds": 0,
        }

    def test_concurrent_reports_from_threads(self, clock) -> None:
        tracker = HealthTracker(["k1"], clock=clock)

        def _hammer() -> None:
            for _ in range(500):
                tracker.record_attempt("k1")

        threads = [threading.Thread(target=_hammer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert tracker.get("k1").total_attempts == 2000


def test_mask_key() -> None:
    assert mask_key("abcdefgh") == "...efgh"
    assert mask_key("abcd") == "****"
    assert mask_key("") == "****"
    assert mask_key(None) == "****"


# ═══════════════════════════════════════════════════════════════
#  KeySelector
# ═══════════════════════════════════════════════════════════════
def _selector(clock, *keys: str) -> tuple[KeySelector, HealthTracker]:
    store = KeyStore.load(keys)
    tracker = HealthTracker(store.credentials, clock=clock)
    return KeySelector(store, tracker), tracker


class TestKeySelector:
    def test_empty_store_returns_none(self, clock) -> None:
        selector, _ = _selector(clock)
        assert selector.select() is None

    def test_round_robin_in_insertion_order(self, clock) -> None:
        selector, _ = _selector(clock, "k1", "k2", "k3")
        assert [selector.select() for _ in range(3)] == ["k1", "k2", "k3"]
        assert selector.select() == "k1"

    def test_records_attempts(self, clock) -> None:
        selector, tracker = _selector(clock, "k1", "k2")
        for _ in range(5):
            selector.select()
        assert tracker.get("k1").total_attempts == 3
        assert tracker.get("k2").total_attempts == 2

    def test_skips_cooling_key(self, clock) -> None:
        selector, tracker = _selector(clock, "k1", "k2", "k3")
        for _ in range(3):
            tracker.report_failure("k2")
        picks = [selector.select() for _ in range(6)]
        assert "k2" not in picks
        assert picks == ["k1", "k3", "k1", "k3", "k1", "k3"]

    def test_cooled_key_returns_after_expiry(self, clock) -> None:
        selector, tracker = _selector(clock, "k1", "k2")
        for _ in range(3):
            tracker.report_failure("k1")
        assert selector.select() == "k2"
        clock.advance(DEFAULT_COOLDOWN_MS + 1)
        assert {selector.select(), selector.select()} == {"k1", "k2"}

    def test_rehabilitated_key_is_selectable_immediately(self, clock) -> None:
        selector, tracker = _selector(clock, "k1")
        for _ in range(3):
            tracker.report_failure("k1")
        tracker.report_success("k1")
        assert selector.select() == "k1"
        assert tracker.is_healthy("k1") is True

    def test_degraded_selection_picks_soonest_recovery(self, clock) -> None:
        selector, tracker = _selector(clock, "k1", "k2", "k3")
        for _ in range(3):
            tracker.report_failure("k1")  # until T + 10 min
        clock.advance(1_000)
        for _ in range(3):
            tracker.report_failure("k2")  # until T + 1s + 10 min
        for _ in range(3):
            tracker.report_failure("k3", cooldown_ms=60_000)  # until T + 61s

        picked = selector.select()
        assert picked == "k3"
        assert tracker.get("k3").total_attempts == 1

    def test_degraded_selection_never_returns_none(self, clock) -> None:
        selector, tracker = _selector(clock, "only")
        for _ in range(3):
            tracker.report_failure("only")
        assert selector.select() == "only"
        assert selector.select() == "only"

    def test_degraded_ties_rotate(self, clock) -> None:
        selector, tracker = _selector(clock, "k1", "k2", "k3")
        for key in ("k1", "k2", "k3"):
            for _ in range(3):
                tracker.report_failure(key)
        assert [selector.select() for _ in range(3)] == ["k1", "k2", "k3"]


# ═══════════════════════════════════════════════════════════════
#  KeyPool
# ═══════════════════════════════════════════════════════════════
class TestKeyPool:
    def test_bundles_components(self, make_pool) -> None:
        pool = make_pool("k1", "k1", "k2")
        assert pool.count() == 2
        assert pool.selector.select() == "k1"
        assert pool.health.get("k1").total_attempts == 1

    def test_debug_snapshot_requires_configured_token(self, make_pool) -> None:
        pool = make_pool("key-aaaa")
        with pytest.raises(AuthorisationError):
            pool.debug_snapshot("anything")

    @pytest.mark.parametrize("token", [None, "", "wrong"])
    def test_debug_snapshot_rejects_bad_token(self, make_pool, token) -> None:
        pool = make_pool("key-aaaa", admin_token="s3cret")
        with pytest.raises(AuthorisationError):
            pool.debug_snapshot(token)

    def test_debug_snapshot_with_valid_token(self, make_pool) -> None:
        pool = make_pool("key-aaaa", "key-bbbb", admin_token="s3cret")
        snap = pool.debug_snapshot("s3cret")
        assert [s.masked_key for s in snap] == ["...aaaa", "...bbbb"]

    def test_separate_pools_do_not_share_state(self, make_pool) -> None:
        first = make_pool("k1")
        second = make_pool("k1")
        for _ in range(3):
            first.health.report_failure("k1")
        assert first.health.is_healthy("k1") is False
        assert second.health.is_healthy("k1") is True

    def test_constructor_accepts_store(self, clock) -> None:
        pool = KeyPool(KeyStore.load(["a1", "a2"]), clock=clock, failure_threshold=1)
        pool.health.report_failure("a1")
        assert pool.health.is_healthy("a1") is False
