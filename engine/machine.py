"""engine.machine

Game state transitions (headless).

Responsibilities:
- time-driven accrual (advance) and offline catch-up (reconcile)
- player commands: purchase, manual action, prestige, full reset
- history sampling and invariant validation

Every operation takes an immutable GameState and returns a Transition.
A rejected command hands back the very same input state, so "rejection
leaves state unchanged" holds by construction. Expected game conditions are
returned as Rejection values and never raised.

This layer is UI-agnostic and never reads the clock: elapsed time and `now`
are always supplied by the caller.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from core.economy import (
    bulk_purchase_cost,
    compute_production_rate,
    finite_or_zero,
    manual_action_value,
    max_affordable_quantity,
    prestige_gain,
    round_precise,
)
from core.state import (
    GameState,
    HistorySample,
    default_start_state,
    definitions_by_id,
    level_of,
    with_level,
    zero_levels,
)

from .config import DEFAULT_CONFIG, EngineConfig
from .logging import make_transition_log

logger = logging.getLogger(__name__)

QuantitySpec = Union[int, str]
MAX = "max"


class RejectionReason(str, Enum):
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INVALID_QUANTITY = "invalid_quantity"


@dataclass(frozen=True)
class Rejection:
    reason: RejectionReason
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OfflineReport:
    """Earnings applied by reconcile(), for optional display."""
    elapsed_seconds: float
    earnings: float


@dataclass(frozen=True)
class Transition:
    state: GameState
    rejection: Optional[Rejection] = None
    report: Optional[OfflineReport] = None
    log: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.rejection is None


# -------------------------
# Helpers
# -------------------------


def _sanitize_elapsed(elapsed_seconds: float, command: str) -> float:
    try:
        e = float(elapsed_seconds)
    except (TypeError, ValueError):
        logger.warning("%s: elapsed %r is not a number, using 0", command, elapsed_seconds)
        return 0.0
    if not math.isfinite(e) or e < 0:
        logger.warning("%s: elapsed %r clamped to 0", command, elapsed_seconds)
        return 0.0
    return e


def _accrue(state: GameState, amount: float, now: float, config: EngineConfig) -> GameState:
    places = config.balance.precision
    currency = round_precise(state.currency + amount, places)
    return replace(
        state,
        currency=currency,
        total_earnings=round_precise(state.total_earnings + amount, places),
        highest_currency_ever_held=max(float(state.highest_currency_ever_held), currency),
        last_update_timestamp=float(now),
    )


def _reject(
    state: GameState,
    command: str,
    reason: RejectionReason,
    message: str,
    details: Dict[str, Any],
) -> Transition:
    logger.debug("%s rejected (%s): %s", command, reason.value, message)
    log = make_transition_log(
        command=command, before=state, after=state, ok=False, reason=reason.value, details=details
    )
    return Transition(state=state, rejection=Rejection(reason, message, dict(details)), log=log)


# -------------------------
# Time-driven transitions
# -------------------------


def advance(
    state: GameState,
    elapsed_seconds: float,
    *,
    now: Optional[float] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Transition:
    """Apply `elapsed_seconds` of production. Negative/non-finite elapsed counts as 0."""
    elapsed = _sanitize_elapsed(elapsed_seconds, "advance")
    ts = float(now) if now is not None else float(state.last_update_timestamp) + elapsed
    increment = round_precise(state.production_rate * elapsed, config.balance.precision)
    new_state = _accrue(state, increment, ts, config)
    log = make_transition_log(
        command="advance", before=state, after=new_state, details={"elapsed": elapsed, "increment": increment}
    )
    return Transition(state=new_state, log=log)


def reconcile(
    state: GameState,
    elapsed_seconds: float,
    *,
    now: Optional[float] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Transition:
    """Offline catch-up after a gap (e.g. process restart).

    Gaps up to the offline threshold only refresh the timestamp. Longer gaps
    credit rate * elapsed and return an OfflineReport, unless the earnings
    come out non-positive or non-finite, in which case nothing is credited.
    """
    elapsed = _sanitize_elapsed(elapsed_seconds, "reconcile")
    ts = float(now) if now is not None else float(state.last_update_timestamp) + elapsed
    details: Dict[str, Any] = {"elapsed": elapsed, "earnings": 0.0}

    earnings = 0.0
    if elapsed > config.balance.offline_threshold_seconds:
        raw = float(state.production_rate) * elapsed
        if not math.isfinite(raw):
            logger.warning("reconcile: non-finite offline earnings (rate=%r, elapsed=%r), ignoring",
                           state.production_rate, elapsed)
        earnings = round_precise(raw, config.balance.precision)

    if earnings <= 0:
        new_state = replace(state, last_update_timestamp=ts)
        log = make_transition_log(command="reconcile", before=state, after=new_state, details=details)
        return Transition(state=new_state, log=log)

    new_state = _accrue(state, earnings, ts, config)
    details["earnings"] = earnings
    log = make_transition_log(command="reconcile", before=state, after=new_state, details=details)
    return Transition(state=new_state, report=OfflineReport(elapsed_seconds=elapsed, earnings=earnings), log=log)


# -------------------------
# Player commands
# -------------------------


def purchase(
    state: GameState,
    upgrade_id: int,
    quantity: QuantitySpec = 1,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Transition:
    """Buy `quantity` levels (or "max") of one upgrade.

    Affordability uses floor(currency) so fractional residue never decides
    a purchase. Not idempotent: the caller must not re-submit.
    """
    bal = config.balance
    defn = definitions_by_id(config.definitions).get(upgrade_id) if isinstance(upgrade_id, int) else None
    if defn is None:
        return _reject(state, "purchase", RejectionReason.INVALID_QUANTITY,
                       f"Unknown upgrade id: {upgrade_id!r}", {"upgrade_id": upgrade_id})

    level = level_of(state.upgrades, defn.id)
    available = math.floor(finite_or_zero(state.currency))

    if isinstance(quantity, str) and quantity.strip().lower() == MAX:
        qty = max_affordable_quantity(defn, level, available, balance=bal)
        if qty <= 0:
            return _reject(state, "purchase", RejectionReason.INSUFFICIENT_FUNDS,
                           f"Cannot afford a single {defn.name}",
                           {"upgrade_id": defn.id, "cost": bulk_purchase_cost(defn, level, 1, balance=bal),
                            "available": available})
    elif isinstance(quantity, int) and not isinstance(quantity, bool):
        qty = int(quantity)
    else:
        return _reject(state, "purchase", RejectionReason.INVALID_QUANTITY,
                       f"Unsupported quantity: {quantity!r}", {"upgrade_id": defn.id})

    if qty <= 0:
        return _reject(state, "purchase", RejectionReason.INVALID_QUANTITY,
                       f"Quantity must be positive, got {qty}", {"upgrade_id": defn.id, "quantity": qty})

    cost = bulk_purchase_cost(defn, level, qty, balance=bal)
    if available < cost:
        return _reject(state, "purchase", RejectionReason.INSUFFICIENT_FUNDS,
                       f"{defn.name} x{qty} costs {cost:.0f}, have {available}",
                       {"upgrade_id": defn.id, "quantity": qty, "cost": cost, "available": available})

    upgrades = with_level(state.upgrades, defn.id, level + qty)
    new_state = replace(
        state,
        currency=round_precise(state.currency - cost, bal.precision),
        upgrades=upgrades,
        production_rate=compute_production_rate(upgrades, state.prestige_points, config.definitions, balance=bal),
    )
    log = make_transition_log(
        command="purchase", before=state, after=new_state,
        details={"upgrade_id": defn.id, "quantity": qty, "cost": cost},
    )
    return Transition(state=new_state, log=log)


def manual_action(state: GameState, *, config: EngineConfig = DEFAULT_CONFIG) -> Transition:
    """A click. Always succeeds."""
    places = config.balance.precision
    value = manual_action_value(state.upgrades, state.prestige_points, config.definitions, balance=config.balance)
    currency = round_precise(state.currency + value, places)
    new_state = replace(
        state,
        currency=currency,
        total_clicks=int(state.total_clicks) + 1,
        manual_earnings=round_precise(state.manual_earnings + value, places),
        total_earnings=round_precise(state.total_earnings + value, places),
        highest_currency_ever_held=max(float(state.highest_currency_ever_held), currency),
    )
    log = make_transition_log(command="manual_action", before=state, after=new_state, details={"value": value})
    return Transition(state=new_state, log=log)


def prestige(state: GameState, *, config: EngineConfig = DEFAULT_CONFIG) -> Transition:
    """Trade currency and upgrade levels for prestige points.

    Lifetime statistics, history and the session start survive; only a
    full reset clears them.
    """
    bal = config.balance
    gain = prestige_gain(state.currency, balance=bal)
    if state.currency < bal.prestige_threshold or gain <= 0:
        return _reject(state, "prestige", RejectionReason.INSUFFICIENT_FUNDS,
                       f"Prestige needs {bal.prestige_threshold:.0f} currency",
                       {"threshold": bal.prestige_threshold, "available": float(state.currency), "gain": gain})

    points = int(state.prestige_points) + gain
    upgrades = zero_levels(config.definitions)
    new_state = replace(
        state,
        currency=0.0,
        upgrades=upgrades,
        prestige_points=points,
        prestige_count=int(state.prestige_count) + 1,
        production_rate=compute_production_rate(upgrades, points, config.definitions, balance=bal),
    )
    log = make_transition_log(command="prestige", before=state, after=new_state, details={"gain": gain})
    return Transition(state=new_state, log=log)


def reset_all(
    state: GameState,
    *,
    now: Optional[float] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Transition:
    """Discard everything, prestige included, and start over."""
    ts = float(now) if now is not None else float(state.last_update_timestamp)
    new_state = default_start_state(config.definitions, now=ts, balance=config.balance)
    log = make_transition_log(command="reset_all", before=state, after=new_state)
    return Transition(state=new_state, log=log)


# -------------------------
# Bookkeeping
# -------------------------


def record_history(state: GameState, now: float, *, config: EngineConfig = DEFAULT_CONFIG) -> GameState:
    """Append a (now, total_earnings) sample; oldest samples fall off past the cap."""
    limit = max(1, int(config.balance.history_limit))
    sample = HistorySample(timestamp=float(now), total_earnings=float(state.total_earnings))
    history = (*state.history, sample)[-limit:]
    return replace(state, history=history)


def validate_state(state: GameState, *, config: EngineConfig = DEFAULT_CONFIG) -> List[str]:
    """Return invariant violations (empty list when the state is healthy)."""
    problems: List[str] = []
    if not math.isfinite(state.currency) or state.currency < 0:
        problems.append(f"currency must be finite and >= 0, got {state.currency!r}")

    ids = [int(u.id) for u in state.upgrades]
    expected = [int(d.id) for d in config.definitions]
    if sorted(ids) != sorted(expected) or len(set(ids)) != len(ids):
        problems.append(f"upgrade ids {ids} do not match definitions {expected}")
    for u in state.upgrades:
        if int(u.level) < 0:
            problems.append(f"upgrade {u.id} has negative level {u.level}")

    rate = compute_production_rate(state.upgrades, state.prestige_points, config.definitions, balance=config.balance)
    if state.production_rate != rate:
        problems.append(f"production_rate {state.production_rate!r} != derived {rate!r}")

    if state.prestige_points < 0 or state.prestige_count < 0 or state.total_clicks < 0:
        problems.append("prestige_points, prestige_count and total_clicks must be >= 0")
    if state.manual_earnings < 0 or state.total_earnings < state.manual_earnings:
        problems.append("total_earnings must be >= manual_earnings >= 0")
    if state.highest_currency_ever_held < state.currency:
        problems.append("highest_currency_ever_held must be >= currency")
    if len(state.history) > config.balance.history_limit:
        problems.append(f"history holds {len(state.history)} samples, cap is {config.balance.history_limit}")
    return problems
