"""engine.config

Engine configuration passed from the driver.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

from core.balance import DEFAULT_BALANCE, BalanceSpec
from core.state import DEFAULT_UPGRADES, UpgradeDefinition

SAVE_PATH_ENV = "COIN_IDLE_SAVE"
DEFAULT_SAVE_PATH = "coin_idle_save.json"


@dataclass(frozen=True)
class EngineConfig:
    definitions: Tuple[UpgradeDefinition, ...] = DEFAULT_UPGRADES
    balance: BalanceSpec = DEFAULT_BALANCE
    tick_interval: float = 0.1      # seconds between accrual ticks
    save_interval: float = 10.0     # seconds between snapshot + history sample
    max_logs: int = 200


def validate_config(cfg: EngineConfig) -> None:
    ids = [int(d.id) for d in cfg.definitions]
    if not ids:
        raise ValueError("config.definitions must not be empty")
    if len(set(ids)) != len(ids):
        raise ValueError("config.definitions ids must be unique")
    if sum(1 for d in cfg.definitions if d.manual) > 1:
        raise ValueError("config.definitions may mark at most one manual upgrade")
    growth = float(cfg.balance.cost_growth)
    if growth <= 1.0:
        raise ValueError("balance.cost_growth must be > 1")
    for d in cfg.definitions:
        if float(d.base_cost) <= 0 or float(d.effect) <= 0:
            raise ValueError(f"upgrade {d.id}: base_cost and effect must be positive")
        # floor() must not flatten consecutive levels into the same price
        if float(d.base_cost) * (growth - 1.0) < 1.0:
            raise ValueError(f"upgrade {d.id}: base_cost too small for a strictly increasing cost curve")
    if cfg.tick_interval <= 0 or cfg.save_interval <= 0:
        raise ValueError("tick_interval and save_interval must be positive")
    if cfg.balance.history_limit < 1:
        raise ValueError("balance.history_limit must be >= 1")
    if cfg.max_logs < 0:
        raise ValueError("max_logs must be >= 0")


def save_path_from_env() -> str:
    return os.getenv(SAVE_PATH_ENV) or DEFAULT_SAVE_PATH


DEFAULT_CONFIG = EngineConfig()
