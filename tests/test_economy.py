"""
Tests for the economy formulas.

Validates:
    1. Cost curve is floored and strictly increasing
    2. Bulk cost is additive over consecutive level ranges
    3. Max affordable quantity is the tight bound
    4. Production / manual value / prestige curves
"""

import math

import pytest

from core.balance import DEFAULT_BALANCE, get_balance
from core.economy import (
    base_production_rate,
    bulk_purchase_cost,
    compute_production_rate,
    finite_or_zero,
    manual_action_value,
    max_affordable_quantity,
    prestige_gain,
    prestige_manual_multiplier,
    prestige_multiplier,
    purchase_cost,
    round_precise,
    upgrade_share,
)
from core.state import DEFAULT_UPGRADES, UpgradeState, definitions_by_id

DEFS = definitions_by_id(DEFAULT_UPGRADES)
CLICKER, FARM, MINE, FACTORY = DEFS[1], DEFS[2], DEFS[3], DEFS[4]


def _levels(**by_name):
    ids = {"clicker": 1, "farm": 2, "mine": 3, "factory": 4}
    lv = {ids[k]: v for k, v in by_name.items()}
    return tuple(UpgradeState(id=d.id, level=lv.get(d.id, 0)) for d in DEFAULT_UPGRADES)


class TestPurchaseCost:

    def test_level_zero_is_base_cost(self):
        for defn in DEFAULT_UPGRADES:
            assert purchase_cost(defn, 0) == defn.base_cost

    def test_floored_growth(self):
        assert purchase_cost(CLICKER, 1) == 11   # 11.5
        assert purchase_cost(CLICKER, 2) == 13   # 13.225

    @pytest.mark.parametrize("defn", DEFAULT_UPGRADES, ids=lambda d: d.name)
    def test_strictly_increasing(self, defn):
        for level in range(0, 250):
            assert purchase_cost(defn, level + 1) > purchase_cost(defn, level)

    def test_overflow_becomes_unaffordable(self):
        assert math.isinf(purchase_cost(CLICKER, 100_000))
        assert max_affordable_quantity(CLICKER, 100_000, 1e300) == 0


class TestBulkCost:

    def test_sum_of_levels(self):
        assert bulk_purchase_cost(CLICKER, 0, 3) == 10 + 11 + 13

    def test_non_positive_quantity_is_free(self):
        assert bulk_purchase_cost(FARM, 4, 0) == 0
        assert bulk_purchase_cost(FARM, 4, -3) == 0

    @pytest.mark.parametrize("defn", DEFAULT_UPGRADES, ids=lambda d: d.name)
    def test_additive(self, defn):
        for level in (0, 7, 31):
            for a in (0, 1, 5):
                for b in (0, 2, 9):
                    whole = bulk_purchase_cost(defn, level, a + b)
                    split = bulk_purchase_cost(defn, level, a) + bulk_purchase_cost(defn, level + a, b)
                    assert whole == split


class TestMaxAffordable:

    def test_known_values(self):
        assert max_affordable_quantity(CLICKER, 0, 9) == 0
        assert max_affordable_quantity(CLICKER, 0, 33) == 2
        assert max_affordable_quantity(CLICKER, 0, 34) == 3

    @pytest.mark.parametrize("defn", DEFAULT_UPGRADES, ids=lambda d: d.name)
    def test_tight_bound(self, defn):
        for level in (0, 3, 40):
            for budget in (0, 1, 99, 100, 12_345, 9_999_999, 1e12):
                q = max_affordable_quantity(defn, level, budget)
                assert bulk_purchase_cost(defn, level, q) <= budget
                assert budget < bulk_purchase_cost(defn, level, q + 1)

    def test_non_finite_budget_affords_nothing(self):
        assert max_affordable_quantity(FARM, 0, float("nan")) == 0
        assert max_affordable_quantity(FARM, 0, float("inf")) == 0


class TestProduction:

    def test_floor_with_no_upgrades(self):
        assert base_production_rate(_levels()) == pytest.approx(DEFAULT_BALANCE.base_rate_floor)
        assert base_production_rate(_levels()) > 0

    def test_manual_upgrade_does_not_produce(self):
        assert base_production_rate(_levels(clicker=25)) == pytest.approx(0.1)

    def test_effect_times_level(self):
        assert base_production_rate(_levels(farm=2, mine=1)) == pytest.approx(0.1 + 10 + 50)

    def test_prestige_curves(self):
        assert prestige_multiplier(0) == 1.0
        assert prestige_manual_multiplier(0) == 1.0
        assert prestige_multiplier(10) == pytest.approx(1.02 ** 10)
        assert prestige_manual_multiplier(10) == pytest.approx(1.015 ** 10)
        assert prestige_multiplier(10) > prestige_manual_multiplier(10)

    def test_compute_production_rate_applies_multiplier(self):
        rate = compute_production_rate(_levels(factory=1), 20)
        assert rate == round((0.1 + 500) * 1.02 ** 20, 10)

    def test_manual_action_value(self):
        assert manual_action_value(_levels(), 0) == 1.0
        assert manual_action_value(_levels(clicker=3), 0) == 4.0
        assert manual_action_value(_levels(clicker=3), 10) == round(4 * 1.015 ** 10, 10)


class TestPrestigeGain:

    def test_threshold_boundary(self):
        assert prestige_gain(999_999) == 0
        assert prestige_gain(1_000_000) == 5

    def test_cube_root_scaling(self):
        assert prestige_gain(8_000_000) == 10
        assert prestige_gain(27_000_000) == 15

    def test_monotonic(self):
        values = [prestige_gain(c) for c in range(0, 50_000_000, 250_000)]
        assert values == sorted(values)

    def test_custom_balance(self):
        assert prestige_gain(10_000, balance=get_balance("quick")) == 5


class TestHelpers:

    def test_round_precise_drops_drift(self):
        assert round_precise(0.1 + 0.2) == 0.3

    def test_non_finite_is_zero(self):
        assert finite_or_zero(float("nan")) == 0.0
        assert round_precise(float("inf")) == 0.0

    def test_upgrade_share(self):
        assert upgrade_share(_levels()) == {}
        share = upgrade_share(_levels(clicker=1, farm=3))
        assert share == {1: 0.25, 2: 0.75}
