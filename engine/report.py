"""engine.report

Read-only projection of GameState for the display collaborator.

Derived values (next cost, max affordable quantity, prestige preview) are
computed on demand from core.economy and never stored in GameState.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from core.economy import (
    bulk_purchase_cost,
    manual_action_value,
    max_affordable_quantity,
    prestige_gain,
    prestige_manual_multiplier,
    prestige_multiplier,
    purchase_cost,
    upgrade_share,
)
from core.state import GameState, HistorySample, level_of

from .config import DEFAULT_CONFIG, EngineConfig

_PREFIXES = ("", "K", "M", "B", "T", "Q")


@dataclass(frozen=True)
class UpgradeView:
    id: int
    name: str
    manual: bool
    level: int
    effect: float
    effect_label: str
    next_cost: float
    affordable: bool
    max_quantity: int
    max_cost: float


@dataclass(frozen=True)
class StateView:
    currency: float
    production_rate: float
    click_value: float
    production_multiplier: float
    manual_multiplier: float
    prestige_points: int
    prestige_count: int
    prestige_gain_preview: int
    prestige_threshold: float
    can_prestige: bool
    total_clicks: int
    manual_earnings: float
    total_earnings: float
    highest_currency_ever_held: float
    time_played_seconds: float
    upgrades: Tuple[UpgradeView, ...]
    distribution: Dict[str, float] = field(default_factory=dict)
    history: Tuple[HistorySample, ...] = ()


def format_number(num: Optional[float]) -> str:
    """2 decimals with K/M/B/T/Q prefixes: 1234.5 -> '1.23 K'."""
    if num is None or not math.isfinite(float(num)):
        return "0.00"
    value = float(num)
    prefix = 0
    while value >= 1000 and prefix < len(_PREFIXES) - 1:
        value /= 1000
        prefix += 1
    return f"{value:.2f} {_PREFIXES[prefix]}".rstrip()


def format_compact(num: Optional[float]) -> str:
    """Statistics style: one decimal above a thousand, whole numbers below."""
    if num is None or not math.isfinite(float(num)):
        return "0"
    n = float(num)
    for scale, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if n >= scale:
            return f"{n / scale:.1f} {suffix}"
    return f"{n:.0f}"


def format_duration(seconds: Optional[float]) -> str:
    """'1d 2h 3m 4s'; leading zero units are dropped."""
    if seconds is None or not math.isfinite(float(seconds)) or float(seconds) <= 0:
        return "0s"
    total = int(math.floor(float(seconds)))
    days, rem = divmod(total, 86_400)
    hours, rem = divmod(rem, 3_600)
    minutes, secs = divmod(rem, 60)
    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0 or days > 0:
        parts.append(f"{hours}h")
    if minutes > 0 or hours > 0 or days > 0:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


def build_view(state: GameState, *, now: float, config: EngineConfig = DEFAULT_CONFIG) -> StateView:
    bal = config.balance
    available = math.floor(state.currency)
    prod_mult = prestige_multiplier(state.prestige_points, balance=bal)
    manual_mult = prestige_manual_multiplier(state.prestige_points, balance=bal)

    rows = []
    for defn in config.definitions:
        level = level_of(state.upgrades, defn.id)
        next_cost = purchase_cost(defn, level, balance=bal)
        max_q = max_affordable_quantity(defn, level, available, balance=bal)
        if defn.manual:
            label = f"+{format_number(defn.effect * manual_mult)}/click"
        else:
            label = f"+{format_number(defn.effect * prod_mult)}/s"
        rows.append(
            UpgradeView(
                id=int(defn.id),
                name=str(defn.name),
                manual=bool(defn.manual),
                level=level,
                effect=float(defn.effect),
                effect_label=label,
                next_cost=next_cost,
                affordable=available >= next_cost,
                max_quantity=max_q,
                max_cost=bulk_purchase_cost(defn, level, max_q, balance=bal),
            )
        )

    names = {int(d.id): str(d.name) for d in config.definitions}
    gain = prestige_gain(state.currency, balance=bal)
    return StateView(
        currency=float(state.currency),
        production_rate=float(state.production_rate),
        click_value=manual_action_value(state.upgrades, state.prestige_points, config.definitions, balance=bal),
        production_multiplier=prod_mult,
        manual_multiplier=manual_mult,
        prestige_points=int(state.prestige_points),
        prestige_count=int(state.prestige_count),
        prestige_gain_preview=gain,
        prestige_threshold=float(bal.prestige_threshold),
        can_prestige=state.currency >= bal.prestige_threshold and gain > 0,
        total_clicks=int(state.total_clicks),
        manual_earnings=float(state.manual_earnings),
        total_earnings=float(state.total_earnings),
        highest_currency_ever_held=float(state.highest_currency_ever_held),
        time_played_seconds=max(0.0, float(now) - float(state.session_start_timestamp)),
        upgrades=tuple(rows),
        distribution={names.get(uid, str(uid)): share for uid, share in upgrade_share(state.upgrades).items()},
        history=tuple(state.history),
    )
