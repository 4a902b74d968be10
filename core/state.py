"""
core.state
Core domain data models (UI/persistence independent).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .balance import DEFAULT_BALANCE, BalanceSpec


@dataclass(frozen=True)
class UpgradeDefinition:
    """Static description of one upgrade type.

    `effect` is production per level for automatic upgrades, or the click
    value per level for the single `manual` upgrade.
    """

    id: int
    name: str
    base_cost: float
    effect: float
    manual: bool = False


@dataclass(frozen=True)
class UpgradeState:
    id: int
    level: int = 0


@dataclass(frozen=True)
class HistorySample:
    timestamp: float
    total_earnings: float


@dataclass(frozen=True)
class GameState:
    """Root aggregate. Only engine.machine produces new instances.

    `production_rate` is derived from upgrades + prestige_points and is
    recomputed on every change to either; it is stored so the tick does
    not need the definitions.
    """

    currency: float
    production_rate: float
    last_update_timestamp: float
    upgrades: Tuple[UpgradeState, ...]
    prestige_points: int = 0
    prestige_count: int = 0
    total_clicks: int = 0
    manual_earnings: float = 0.0
    total_earnings: float = 0.0
    highest_currency_ever_held: float = 0.0
    session_start_timestamp: float = 0.0
    history: Tuple[HistorySample, ...] = field(default_factory=tuple)


DEFAULT_UPGRADES: Tuple[UpgradeDefinition, ...] = (
    UpgradeDefinition(id=1, name="Clicker", base_cost=10.0, effect=1.0, manual=True),
    UpgradeDefinition(id=2, name="Farm", base_cost=100.0, effect=5.0),
    UpgradeDefinition(id=3, name="Mine", base_cost=1100.0, effect=50.0),
    UpgradeDefinition(id=4, name="Factory", base_cost=12000.0, effect=500.0),
)


def definitions_by_id(definitions: Iterable[UpgradeDefinition]) -> Dict[int, UpgradeDefinition]:
    return {int(d.id): d for d in definitions}


def manual_definition(definitions: Iterable[UpgradeDefinition]) -> Optional[UpgradeDefinition]:
    return next((d for d in definitions if d.manual), None)


def level_of(upgrades: Sequence[UpgradeState], upgrade_id: int) -> int:
    for u in upgrades:
        if int(u.id) == int(upgrade_id):
            return int(u.level)
    return 0


def zero_levels(definitions: Iterable[UpgradeDefinition]) -> Tuple[UpgradeState, ...]:
    return tuple(UpgradeState(id=int(d.id), level=0) for d in definitions)


def _row_int(value: object, key: str) -> int:
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"upgrade {key} must be finite, got {value!r}")
    return int(value)  # type: ignore[arg-type]


def merge_upgrades(
    definitions: Sequence[UpgradeDefinition],
    saved: Iterable[Mapping[str, object]],
) -> Tuple[UpgradeState, ...]:
    """Merge saved {id, level} rows against the canonical definition set.

    - ordering follows `definitions`
    - ids missing from the save start at level 0
    - ids unknown to `definitions` are dropped
    - duplicate ids keep the first row
    - negative levels clamp to 0

    Rows that are not mappings, or whose id/level is not a finite number
    coercible to int, raise TypeError/ValueError; the snapshot loader treats
    that as corruption.
    """
    levels: Dict[int, int] = {}
    for row in saved:
        if not isinstance(row, Mapping):
            raise TypeError(f"upgrade row must be a mapping, got {type(row).__name__}")
        uid = _row_int(row["id"], "id")
        if uid in levels:
            continue
        levels[uid] = max(0, _row_int(row.get("level", 0) or 0, "level"))
    return tuple(UpgradeState(id=int(d.id), level=levels.get(int(d.id), 0)) for d in definitions)


def upgrades_to_rows(upgrades: Sequence[UpgradeState]) -> List[Dict[str, int]]:
    return [{"id": int(u.id), "level": int(u.level)} for u in upgrades]


def with_level(upgrades: Sequence[UpgradeState], upgrade_id: int, level: int) -> Tuple[UpgradeState, ...]:
    return tuple(
        UpgradeState(id=int(u.id), level=int(level)) if int(u.id) == int(upgrade_id) else u
        for u in upgrades
    )


def default_start_state(
    definitions: Sequence[UpgradeDefinition] = DEFAULT_UPGRADES,
    *,
    now: float = 0.0,
    balance: Optional[BalanceSpec] = None,
) -> GameState:
    """Fresh game: no currency, every upgrade at level 0, no prestige.

    Keep it in core so headless tests and the driver share the same baseline.
    """
    from .economy import compute_production_rate

    bal = balance or DEFAULT_BALANCE
    upgrades = zero_levels(definitions)
    return GameState(
        currency=0.0,
        production_rate=compute_production_rate(upgrades, 0, definitions, balance=bal),
        last_update_timestamp=float(now),
        upgrades=upgrades,
        session_start_timestamp=float(now),
        history=(),
    )
