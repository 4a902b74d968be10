"""
core.economy
Economy rules (pure, stateless, total):
- upgrade cost curve, bulk cost, max affordable quantity
- production rate (base + prestige multiplier)
- manual action value
- prestige point award

Nothing here raises for in-domain inputs. Non-finite intermediates collapse
to 0 (or to +inf for costs that overflow, so they are never affordable).
"""

from __future__ import annotations

import math
from typing import Dict, Sequence

from .balance import DEFAULT_BALANCE, BalanceSpec
from .state import (
    DEFAULT_UPGRADES,
    UpgradeDefinition,
    UpgradeState,
    definitions_by_id,
    level_of,
    manual_definition,
)


def finite_or_zero(x: float) -> float:
    x = float(x)
    return x if math.isfinite(x) else 0.0


def round_precise(x: float, places: int = DEFAULT_BALANCE.precision) -> float:
    return round(finite_or_zero(x), int(places))


def _safe_pow(base: float, exp: float) -> float:
    try:
        return float(base) ** float(exp)
    except OverflowError:
        return math.inf


# -------------------------
# Upgrade costs
# -------------------------


def purchase_cost(defn: UpgradeDefinition, level: int, *, balance: BalanceSpec = DEFAULT_BALANCE) -> float:
    """floor(base_cost * growth^level). +inf once the curve overflows."""
    raw = float(defn.base_cost) * _safe_pow(balance.cost_growth, max(0, int(level)))
    if not math.isfinite(raw):
        return math.inf
    return float(math.floor(raw))


def bulk_purchase_cost(
    defn: UpgradeDefinition,
    level: int,
    quantity: int,
    *,
    balance: BalanceSpec = DEFAULT_BALANCE,
) -> float:
    """Sum of purchase_cost over levels [level, level + quantity). quantity <= 0 -> 0."""
    total = 0.0
    for i in range(max(0, int(quantity))):
        total += purchase_cost(defn, int(level) + i, balance=balance)
        if math.isinf(total):
            break
    return total


def max_affordable_quantity(
    defn: UpgradeDefinition,
    level: int,
    available: float,
    *,
    balance: BalanceSpec = DEFAULT_BALANCE,
) -> int:
    """Largest q with bulk_purchase_cost(defn, level, q) <= available.

    Greedy level by level; costs strictly increase so no skipped level could
    make a later one reachable.
    """
    budget = finite_or_zero(available)
    spent = 0.0
    q = 0
    while True:
        nxt = purchase_cost(defn, int(level) + q, balance=balance)
        if spent + nxt > budget:
            return q
        spent += nxt
        q += 1


# -------------------------
# Production / manual value
# -------------------------


def prestige_multiplier(prestige_points: int, *, balance: BalanceSpec = DEFAULT_BALANCE) -> float:
    return _safe_pow(balance.prestige_production_base, max(0, int(prestige_points)))


def prestige_manual_multiplier(prestige_points: int, *, balance: BalanceSpec = DEFAULT_BALANCE) -> float:
    return _safe_pow(balance.prestige_manual_base, max(0, int(prestige_points)))


def base_production_rate(
    upgrades: Sequence[UpgradeState],
    definitions: Sequence[UpgradeDefinition] = DEFAULT_UPGRADES,
    *,
    balance: BalanceSpec = DEFAULT_BALANCE,
) -> float:
    by_id = definitions_by_id(definitions)
    rate = float(balance.base_rate_floor)
    for u in upgrades:
        defn = by_id.get(int(u.id))
        if defn is None or defn.manual:
            continue
        rate += float(defn.effect) * int(u.level)
    return rate


def compute_production_rate(
    upgrades: Sequence[UpgradeState],
    prestige_points: int,
    definitions: Sequence[UpgradeDefinition] = DEFAULT_UPGRADES,
    *,
    balance: BalanceSpec = DEFAULT_BALANCE,
) -> float:
    base = base_production_rate(upgrades, definitions, balance=balance)
    return round_precise(base * prestige_multiplier(prestige_points, balance=balance), balance.precision)


def manual_action_value(
    upgrades: Sequence[UpgradeState],
    prestige_points: int,
    definitions: Sequence[UpgradeDefinition] = DEFAULT_UPGRADES,
    *,
    balance: BalanceSpec = DEFAULT_BALANCE,
) -> float:
    """effect * (1 + manual level) * manual prestige multiplier."""
    defn = manual_definition(definitions)
    effect = float(defn.effect) if defn is not None else 1.0
    level = level_of(upgrades, defn.id) if defn is not None else 0
    value = effect * (1 + level) * prestige_manual_multiplier(prestige_points, balance=balance)
    return round_precise(value, balance.precision)


# -------------------------
# Prestige
# -------------------------


def prestige_gain(currency: float, *, balance: BalanceSpec = DEFAULT_BALANCE) -> int:
    """0 below the threshold, else floor(scale * cbrt(currency / threshold))."""
    c = finite_or_zero(currency)
    if c < balance.prestige_threshold:
        return 0
    return int(math.floor(balance.prestige_gain_scale * math.cbrt(c / balance.prestige_threshold)))


# -------------------------
# Reporting helpers
# -------------------------


def upgrade_share(upgrades: Sequence[UpgradeState]) -> Dict[int, float]:
    """Fraction of all purchased levels held by each upgrade (levels > 0 only)."""
    owned = [u for u in upgrades if int(u.level) > 0]
    total = sum(int(u.level) for u in owned)
    if total <= 0:
        return {}
    return {int(u.id): int(u.level) / total for u in owned}
