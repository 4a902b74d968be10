"""engine.sim_runner

Headless runner for quick sanity checks and balance experiments.

Drives a GameSession with a simulated clock (no wall-clock reads) and a tiny
deterministic bot: click a few times per second, buy the upgrade with the
best production per cost, prestige once the gain reaches a target.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core.economy import purchase_cost
from core.state import level_of

from .config import EngineConfig
from .machine import validate_state
from .persistence import MemoryStore
from .report import format_number
from .session import GameSession

logger = logging.getLogger(__name__)


@dataclass
class GreedyBot:
    """Deterministic player for tests (no randomness)."""

    clicks_per_second: int = 5
    prestige_at_gain: int = 5

    def pick_upgrade(self, session: GameSession) -> Optional[int]:
        state = session.state
        best_id: Optional[int] = None
        best_ratio = 0.0
        for defn in session.config.definitions:
            if defn.manual:
                continue
            cost = purchase_cost(defn, level_of(state.upgrades, defn.id), balance=session.config.balance)
            if cost > int(state.currency):
                continue
            ratio = float(defn.effect) / cost
            if ratio > best_ratio:
                best_id, best_ratio = int(defn.id), ratio
        return best_id

    def act(self, session: GameSession) -> None:
        for _ in range(self.clicks_per_second):
            session.manual_action()
        # bounded: every purchase strictly raises the next price
        for _ in range(100):
            uid = self.pick_upgrade(session)
            if uid is None or not session.purchase(uid, 1).ok:
                break
        if session.view(session.state.last_update_timestamp).prestige_gain_preview >= self.prestige_at_gain:
            session.prestige()


def run_headless_sim(
    seconds: int = 600,
    *,
    config: Optional[EngineConfig] = None,
    bot: Optional[GreedyBot] = None,
    check_invariants: bool = True,
) -> Dict[str, Any]:
    """Simulate `seconds` of play at one tick per second and return a summary."""
    cfg = config or EngineConfig()
    player = bot or GreedyBot()
    store = MemoryStore()
    session = GameSession(store=store, config=cfg, now=0.0)
    session.start(0.0)

    violations: List[str] = []
    for second in range(1, int(seconds) + 1):
        session.pump(float(second))
        player.act(session)
        if check_invariants:
            violations.extend(f"t={second}: {p}" for p in validate_state(session.state, config=cfg))

    final = session.state
    logger.info(
        "headless run: %ss, currency %s, rate %s/s, prestiges %s",
        seconds, format_number(final.currency), format_number(final.production_rate), final.prestige_count,
    )
    return {
        "seconds": int(seconds),
        "final": final,
        "logs": session.logs,
        "saves": store.saves,
        "violations": violations,
    }


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    run_headless_sim(3600)
