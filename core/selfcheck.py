"""
core.selfcheck
Minimal "it runs" proof for the economy and the state transitions.

Run:
  python -m core.selfcheck
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from .balance import get_balance
from .economy import (
    bulk_purchase_cost,
    max_affordable_quantity,
    prestige_gain,
    purchase_cost,
)
from .state import DEFAULT_UPGRADES


def check_economy() -> None:
    bal = get_balance("standard")
    for defn in DEFAULT_UPGRADES:
        for level in range(0, 60):
            assert purchase_cost(defn, level + 1, balance=bal) > purchase_cost(defn, level, balance=bal)
        for budget in (0, 9, 10, 1_000, 123_456):
            q = max_affordable_quantity(defn, 3, budget, balance=bal)
            assert bulk_purchase_cost(defn, 3, q, balance=bal) <= budget < bulk_purchase_cost(defn, 3, q + 1, balance=bal)
    assert prestige_gain(999_999, balance=bal) == 0
    assert prestige_gain(1_000_000, balance=bal) == 5


def run_session_smoke(seconds: int = 900) -> None:
    # engine depends on core, not the other way round; import late
    from engine.sim_runner import run_headless_sim

    result = run_headless_sim(seconds)
    assert not result["violations"], result["violations"][:5]
    final = result["final"]
    assert final.currency >= 0.0
    assert final.total_earnings >= final.manual_earnings

    print("OK: economy + session smoke test passed.")
    print("Final state:", {k: v for k, v in asdict(final).items() if k not in ("history", "upgrades")})
    print("Levels:", {u.id: u.level for u in final.upgrades})


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    check_economy()
    run_session_smoke()
