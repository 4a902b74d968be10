"""engine.snapshot

Persistence snapshot contract: GameState <-> JSON-compatible dict.

Schema strategy:
- v2 is the current schema (camelCase keys, timestamps in seconds).
- v1 (the browser save: `coins`, `coinsPerSecond`, `lastUpdate` in ms, no
  `version` key) is still accepted and is upgraded to v2. A save counts as
  v1 only when it carries the browser-era keys; a version-less snapshot with
  camelCase keys is read as-is, timestamps already in seconds.

Loading is tolerant of missing fields (documented defaults) but strict about
the shape of what is present: a wrong type or a non-finite/negative number is
structural corruption. `load_or_default` never raises; it discards a corrupt
snapshot and starts a fresh game.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.economy import compute_production_rate, round_precise
from core.state import (
    GameState,
    HistorySample,
    default_start_state,
    merge_upgrades,
    upgrades_to_rows,
)

from .config import DEFAULT_CONFIG, EngineConfig

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 2

# v1 key -> v2 key
LEGACY_ALIASES: Dict[str, str] = {
    "coins": "currency",
    "coinsPerSecond": "productionRate",
    "lastUpdate": "lastUpdateTimestamp",
    "startTime": "sessionStartTimestamp",
    "highestCoins": "highestCurrencyEverHeld",
}

# v1 stored these as epoch milliseconds
_LEGACY_MS_KEYS = ("lastUpdate", "startTime")


class CorruptSnapshotError(ValueError):
    """Snapshot failed structural validation."""


def to_snapshot(state: GameState) -> Dict[str, Any]:
    return {
        "version": SNAPSHOT_VERSION,
        "currency": float(state.currency),
        "productionRate": float(state.production_rate),
        "lastUpdateTimestamp": float(state.last_update_timestamp),
        "upgrades": upgrades_to_rows(state.upgrades),
        "prestigePoints": int(state.prestige_points),
        "history": [
            {"timestamp": float(h.timestamp), "totalEarnings": float(h.total_earnings)}
            for h in state.history
        ],
        "totalClicks": int(state.total_clicks),
        "manualEarnings": float(state.manual_earnings),
        "totalEarnings": float(state.total_earnings),
        "sessionStartTimestamp": float(state.session_start_timestamp),
        "prestigeCount": int(state.prestige_count),
        "highestCurrencyEverHeld": float(state.highest_currency_ever_held),
    }


def is_legacy(data: Mapping[str, Any]) -> bool:
    return data.get("version") is None and any(k in data for k in LEGACY_ALIASES)


def upgrade_legacy(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename v1 keys and convert its millisecond timestamps to seconds.

    Only values that arrived under a v1 name are rescaled; a v1 key wins
    over a v2 key of the same meaning.
    """
    out: Dict[str, Any] = {str(k): v for k, v in dict(data).items() if str(k) not in LEGACY_ALIASES}
    for old, new in LEGACY_ALIASES.items():
        if old not in data:
            continue
        if old in _LEGACY_MS_KEYS and data.get(old) is not None:
            out[new] = _number(data, old, 0.0) / 1000.0
        else:
            out[new] = data.get(old)
    history = out.get("history")
    if isinstance(history, list):
        out["history"] = [
            {**row, "timestamp": _number(row, "timestamp", 0.0) / 1000.0} if isinstance(row, Mapping) else row
            for row in history
        ]
    out["version"] = SNAPSHOT_VERSION
    return out


def _number(data: Mapping[str, Any], key: str, default: float) -> float:
    raw = data.get(key)
    if raw is None:
        return float(default)
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        raise CorruptSnapshotError(f"{key}: expected a number, got {type(raw).__name__}")
    try:
        val = float(raw)
    except ValueError as e:
        raise CorruptSnapshotError(f"{key}: {e}") from e
    if not math.isfinite(val) or val < 0:
        raise CorruptSnapshotError(f"{key}: expected a finite non-negative number, got {raw!r}")
    return val


def _count(data: Mapping[str, Any], key: str) -> int:
    return int(math.floor(_number(data, key, 0.0)))


def _list(data: Mapping[str, Any], key: str) -> List[Any]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise CorruptSnapshotError(f"{key}: expected a list, got {type(raw).__name__}")
    return raw


def from_snapshot(
    data: Any,
    *,
    now: float,
    config: EngineConfig = DEFAULT_CONFIG,
) -> GameState:
    """Decode a snapshot, merging upgrades against `config.definitions`.

    Defaults for fields an older schema lacks:
    - counters and earnings: 0
    - highestCurrencyEverHeld, totalEarnings: aliased to currency
    - timestamps: `now`
    - upgrade ids not in the save: level 0

    productionRate is recomputed, never trusted. Raises CorruptSnapshotError.
    """
    if not isinstance(data, Mapping):
        raise CorruptSnapshotError(f"snapshot must be an object, got {type(data).__name__}")
    if is_legacy(data):
        data = upgrade_legacy(data)

    bal = config.balance
    places = bal.precision
    currency = round_precise(_number(data, "currency", 0.0), places)

    try:
        upgrades = merge_upgrades(config.definitions, _list(data, "upgrades"))
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        raise CorruptSnapshotError(f"upgrades: {e}") from e

    history: List[HistorySample] = []
    for row in _list(data, "history"):
        if not isinstance(row, Mapping):
            raise CorruptSnapshotError("history rows must be objects")
        history.append(
            HistorySample(timestamp=_number(row, "timestamp", 0.0), total_earnings=_number(row, "totalEarnings", 0.0))
        )

    points = _count(data, "prestigePoints")
    manual = round_precise(_number(data, "manualEarnings", 0.0), places)
    total = round_precise(_number(data, "totalEarnings", currency), places)
    highest = _number(data, "highestCurrencyEverHeld", currency)

    return GameState(
        currency=currency,
        production_rate=compute_production_rate(upgrades, points, config.definitions, balance=bal),
        last_update_timestamp=_number(data, "lastUpdateTimestamp", now),
        upgrades=upgrades,
        prestige_points=points,
        prestige_count=_count(data, "prestigeCount"),
        total_clicks=_count(data, "totalClicks"),
        manual_earnings=manual,
        total_earnings=max(total, manual),
        highest_currency_ever_held=max(highest, currency),
        session_start_timestamp=_number(data, "sessionStartTimestamp", now),
        history=tuple(history[-bal.history_limit:]),
    )


def load_or_default(
    data: Optional[Any],
    *,
    now: float,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Tuple[GameState, Optional[str]]:
    """Return (state, problem). `problem` is set when a corrupt snapshot was discarded."""
    fresh = default_start_state(config.definitions, now=now, balance=config.balance)
    if data is None:
        return fresh, None
    try:
        return from_snapshot(data, now=now, config=config), None
    except CorruptSnapshotError as e:
        logger.warning("discarding corrupt snapshot: %s", e)
        return fresh, str(e)
