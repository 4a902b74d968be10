"""
Tests for engine.machine transitions.

Validates:
    1. Accrual is conserved and clamps bad elapsed values
    2. Offline catch-up is gated by the threshold
    3. Rejected commands hand back the identical state
    4. Prestige / reset semantics and invariant validation
"""

import json
from dataclasses import replace

import pytest

from core.economy import compute_production_rate
from core.state import DEFAULT_UPGRADES, default_start_state, level_of, with_level, zero_levels
from engine.machine import (
    RejectionReason,
    advance,
    manual_action,
    prestige,
    purchase,
    reconcile,
    record_history,
    reset_all,
    validate_state,
)

T0 = 100.0


def _state(currency=0.0, levels=None, points=0):
    base = default_start_state(now=T0)
    upgrades = base.upgrades
    for uid, lv in (levels or {}).items():
        upgrades = with_level(upgrades, uid, lv)
    return replace(
        base,
        currency=float(currency),
        upgrades=upgrades,
        prestige_points=points,
        production_rate=compute_production_rate(upgrades, points),
        total_earnings=float(currency),
        highest_currency_ever_held=float(currency),
    )


class TestAdvance:

    def test_rate_times_elapsed(self):
        s = replace(_state(), production_rate=5.0)
        t = advance(s, 2.0)
        assert t.ok
        assert t.state.currency == pytest.approx(10.0)
        assert t.state.total_earnings == pytest.approx(10.0)
        assert t.state.highest_currency_ever_held == pytest.approx(10.0)
        assert t.state.last_update_timestamp == T0 + 2.0

    def test_explicit_now(self):
        t = advance(_state(), 1.0, now=500.0)
        assert t.state.last_update_timestamp == 500.0

    def test_split_ticks_match_one_tick(self):
        s = _state(levels={2: 3})
        one = advance(s, 2.0).state
        two = advance(advance(s, 1.0).state, 1.0).state
        assert one.currency == pytest.approx(two.currency)

    @pytest.mark.parametrize("elapsed", [-5.0, float("nan"), float("inf"), "abc", None])
    def test_bad_elapsed_counts_as_zero(self, elapsed):
        s = _state(currency=3.0)
        t = advance(s, elapsed)
        assert t.state.currency == 3.0
        assert t.state.last_update_timestamp == T0

    def test_log_is_serializable(self):
        t = advance(_state(), 1.0)
        assert t.log["command"] == "advance"
        assert t.log["details"]["elapsed"] == 1.0
        json.dumps(t.log)


class TestReconcile:

    @pytest.mark.parametrize("gap", [0.0, 3.0, 5.0])
    def test_short_gap_only_refreshes_timestamp(self, gap):
        s = _state(levels={2: 1})
        t = reconcile(s, gap, now=T0 + gap)
        assert t.report is None
        assert t.state.currency == s.currency
        assert t.state.last_update_timestamp == T0 + gap

    def test_long_gap_credits_and_reports(self):
        s = replace(_state(), production_rate=1.0)
        t = reconcile(s, 10.0)
        assert t.report is not None
        assert t.report.elapsed_seconds == 10.0
        assert t.report.earnings == pytest.approx(10.0)
        assert t.state.currency == pytest.approx(10.0)
        assert t.state.total_earnings == pytest.approx(10.0)

    def test_non_finite_earnings_are_ignored(self):
        s = replace(_state(currency=7.0), production_rate=float("inf"))
        t = reconcile(s, 60.0)
        assert t.report is None
        assert t.state.currency == 7.0

    def test_zero_rate_gives_no_report(self):
        s = replace(_state(), production_rate=0.0)
        assert reconcile(s, 3600.0).report is None


class TestPurchase:

    def test_buy_one(self):
        s = _state(currency=100.0)
        t = purchase(s, 2)
        assert t.ok
        assert level_of(t.state.upgrades, 2) == 1
        assert t.state.currency == 0.0
        assert t.state.production_rate == pytest.approx(5.1)

    def test_manual_upgrade_leaves_rate_alone(self):
        s = _state(currency=10.0)
        t = purchase(s, 1)
        assert t.ok
        assert level_of(t.state.upgrades, 1) == 1
        assert t.state.production_rate == s.production_rate

    def test_bulk_quantity(self):
        t = purchase(_state(currency=34.0), 1, 3)
        assert t.ok
        assert level_of(t.state.upgrades, 1) == 3
        assert t.state.currency == 0.0

    @pytest.mark.parametrize("spec", ["max", "MAX", " Max "])
    def test_max_buys_everything_affordable(self, spec):
        t = purchase(_state(currency=34.5), 1, spec)
        assert t.ok
        assert level_of(t.state.upgrades, 1) == 3
        assert t.state.currency == pytest.approx(0.5)

    def test_max_with_nothing_affordable(self):
        s = _state(currency=5.0)
        t = purchase(s, 1, "max")
        assert t.rejection.reason == RejectionReason.INSUFFICIENT_FUNDS
        assert t.state is s

    @pytest.mark.parametrize("currency,qty", [(9.0, 1), (9.9999999, 1), (33.0, 3)])
    def test_insufficient_funds_uses_floor(self, currency, qty):
        s = _state(currency=currency)
        t = purchase(s, 1, qty)
        assert not t.ok
        assert t.rejection.reason == RejectionReason.INSUFFICIENT_FUNDS
        assert t.state is s
        assert t.log["ok"] is False

    @pytest.mark.parametrize("qty", [0, -1, 1.5, "abc", True, None])
    def test_invalid_quantity(self, qty):
        s = _state(currency=1_000.0)
        t = purchase(s, 2, qty)
        assert t.rejection.reason == RejectionReason.INVALID_QUANTITY
        assert t.state is s

    @pytest.mark.parametrize("uid", [99, "2", None])
    def test_unknown_upgrade(self, uid):
        s = _state(currency=1_000.0)
        t = purchase(s, uid)
        assert t.rejection.reason == RejectionReason.INVALID_QUANTITY
        assert t.state is s


class TestManualAction:

    def test_counts_and_earnings(self):
        t = manual_action(_state())
        s = t.state
        assert (s.currency, s.total_clicks, s.manual_earnings, s.total_earnings) == (1.0, 1, 1.0, 1.0)
        assert s.highest_currency_ever_held == 1.0

    def test_clicker_levels_and_prestige(self):
        assert manual_action(_state(levels={1: 2})).state.currency == 3.0
        boosted = manual_action(_state(levels={1: 2}, points=10)).state.currency
        assert boosted == pytest.approx(3.0 * 1.015 ** 10)


class TestPrestige:

    def test_below_threshold_rejected(self):
        s = _state(currency=999_999.0)
        t = prestige(s)
        assert t.rejection.reason == RejectionReason.INSUFFICIENT_FUNDS
        assert t.state is s

    def test_resets_run_keeps_lifetime_stats(self):
        s = replace(
            _state(currency=1_000_000.0, levels={2: 3, 3: 1}),
            total_clicks=7,
            manual_earnings=7.0,
            history=record_history(_state(), 50.0).history,
        )
        t = prestige(s)
        after = t.state
        assert t.ok
        assert after.prestige_points == 5
        assert after.prestige_count == 1
        assert after.currency == 0.0
        assert after.upgrades == zero_levels(DEFAULT_UPGRADES)
        assert after.production_rate == compute_production_rate(after.upgrades, 5)
        assert after.total_clicks == 7
        assert after.total_earnings == s.total_earnings
        assert after.highest_currency_ever_held == 1_000_000.0
        assert after.history == s.history
        assert after.session_start_timestamp == s.session_start_timestamp

    def test_points_accumulate(self):
        s = _state(currency=8_000_000.0, points=3)
        assert prestige(s).state.prestige_points == 13


class TestResetAll:

    def test_back_to_defaults(self):
        s = prestige(_state(currency=2_000_000.0)).state
        t = reset_all(s, now=50.0)
        assert t.state == default_start_state(now=50.0)
        assert t.state.prestige_points == 0

    def test_keeps_timestamp_without_now(self):
        s = _state(currency=12.0)
        assert reset_all(s).state.last_update_timestamp == T0


class TestHistory:

    def test_capped_to_newest(self):
        s = _state()
        for i in range(70):
            s = record_history(s, float(i))
        assert len(s.history) == 60
        assert s.history[0].timestamp == 10.0
        assert s.history[-1].timestamp == 69.0


class TestValidateState:

    def test_healthy_after_play(self):
        s = default_start_state(now=0.0)
        for _ in range(20):
            s = manual_action(s).state
        s = purchase(s, 1, "max").state
        s = advance(s, 30.0).state
        s = record_history(s, 30.0)
        assert validate_state(s) == []

    def test_detects_tampering(self):
        s = _state(currency=10.0)
        assert validate_state(replace(s, production_rate=123.0))
        assert validate_state(replace(s, currency=-1.0))
        assert validate_state(replace(s, upgrades=s.upgrades[:2]))
        assert validate_state(replace(s, highest_currency_ever_held=1.0))
