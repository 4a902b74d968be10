"""
core.balance
Balance constants (cost curve, prestige curves, offline gating).

Kept in core so balancing lives in one place; the driver may pass a custom
BalanceSpec for experiments, but the default set is the one the game ships.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class BalanceSpec:
    key: str
    desc: str
    cost_growth: float = 1.15
    base_rate_floor: float = 0.1            # idle income with no upgrades
    prestige_production_base: float = 1.02
    prestige_manual_base: float = 1.015
    prestige_threshold: float = 1_000_000.0
    prestige_gain_scale: float = 5.0
    offline_threshold_seconds: float = 5.0
    precision: int = 10                     # decimal places kept on currency/rate
    history_limit: int = 60                 # 10 minutes of samples at a 10 s cadence


DEFAULT_BALANCE = BalanceSpec(
    key="standard",
    desc="Shipped constants: 15% cost growth, prestige from 1M currency.",
)

BALANCES: Dict[str, BalanceSpec] = {
    DEFAULT_BALANCE.key: DEFAULT_BALANCE,
    "quick": BalanceSpec(
        key="quick",
        desc="Low prestige threshold for playtesting the reset loop.",
        prestige_threshold=10_000.0,
    ),
}


def get_balance(key: str) -> BalanceSpec:
    return BALANCES.get(key, DEFAULT_BALANCE)
