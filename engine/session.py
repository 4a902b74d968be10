"""engine.session

Single owner of the live GameState.

The driver (Streamlit app, headless runner, tests) talks to a GameSession;
the session forwards to the pure transitions in engine.machine, keeps the
latest state and a bounded transition log, and owns the snapshot store.
Calls are serialized with a lock so a host that fires timers from several
threads still applies transitions one at a time, in order.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional

from core.state import GameState, default_start_state

from .config import DEFAULT_CONFIG, EngineConfig, validate_config
from .logging import dumps_session_export, make_session_export
from .machine import (
    OfflineReport,
    QuantitySpec,
    Transition,
    advance,
    manual_action,
    prestige,
    purchase,
    reconcile,
    record_history,
    reset_all,
)
from .persistence import MemoryStore, SnapshotStore
from .report import StateView, build_view
from .snapshot import load_or_default, to_snapshot

logger = logging.getLogger(__name__)


class GameSession:
    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        config: EngineConfig = DEFAULT_CONFIG,
        *,
        now: float = 0.0,
    ) -> None:
        validate_config(config)
        self.config = config
        self.store: SnapshotStore = store if store is not None else MemoryStore()
        self._lock = threading.RLock()
        self._state = default_start_state(config.definitions, now=now, balance=config.balance)
        self._logs: List[Dict[str, Any]] = []
        self.last_save_timestamp: Optional[float] = None
        self.load_problem: Optional[str] = None
        self.offline_report: Optional[OfflineReport] = None

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def logs(self) -> List[Dict[str, Any]]:
        return list(self._logs)

    def _apply(self, t: Transition) -> Transition:
        self._state = t.state
        if self.config.max_logs > 0 and t.log:
            self._logs.append(t.log)
            del self._logs[: -self.config.max_logs]
        return t

    # -------------------------
    # Lifecycle
    # -------------------------

    def start(self, now: float) -> Transition:
        """Restore from the store (or defaults) and catch up on offline time."""
        with self._lock:
            state, problem = load_or_default(self.store.load(), now=now, config=self.config)
            self.load_problem = problem
            if problem is not None:
                self.store.clear()
            t = reconcile(state, float(now) - float(state.last_update_timestamp), now=now, config=self.config)
            self.offline_report = t.report
            if t.report is not None:
                logger.info("offline for %.1fs, credited %.4f", t.report.elapsed_seconds, t.report.earnings)
            return self._apply(t)

    def tick(self, now: float) -> Transition:
        """Accrue from the last update up to `now` (never moves time backwards)."""
        with self._lock:
            last = float(self._state.last_update_timestamp)
            return self._apply(advance(self._state, float(now) - last, now=max(float(now), last), config=self.config))

    def autosave(self, now: float) -> None:
        """Append a history sample and persist a snapshot."""
        with self._lock:
            self._state = record_history(self._state, now, config=self.config)
            self.store.save(to_snapshot(self._state))
            self.last_save_timestamp = float(now)

    def pump(self, now: float) -> Transition:
        """One driver step: tick, then autosave when the save interval has passed."""
        with self._lock:
            t = self.tick(now)
            if self.last_save_timestamp is None or float(now) - self.last_save_timestamp >= self.config.save_interval:
                self.autosave(now)
            return t

    # -------------------------
    # Command surface
    # -------------------------

    def advance(self, elapsed_seconds: float) -> Transition:
        with self._lock:
            return self._apply(advance(self._state, elapsed_seconds, config=self.config))

    def reconcile(self, elapsed_seconds: float) -> Transition:
        with self._lock:
            return self._apply(reconcile(self._state, elapsed_seconds, config=self.config))

    def purchase(self, upgrade_id: int, quantity: QuantitySpec = 1) -> Transition:
        with self._lock:
            return self._apply(purchase(self._state, upgrade_id, quantity, config=self.config))

    def manual_action(self) -> Transition:
        with self._lock:
            return self._apply(manual_action(self._state, config=self.config))

    def prestige(self) -> Transition:
        with self._lock:
            return self._apply(prestige(self._state, config=self.config))

    def reset_all(self, now: Optional[float] = None) -> Transition:
        """Full reset; the persisted snapshot is discarded too."""
        with self._lock:
            t = self._apply(reset_all(self._state, now=now, config=self.config))
            self.store.clear()
            self.last_save_timestamp = None
            self.offline_report = None
            return t

    # -------------------------
    # Reporting
    # -------------------------

    def view(self, now: float) -> StateView:
        with self._lock:
            return build_view(self._state, now=now, config=self.config)

    def export(self) -> str:
        with self._lock:
            payload = make_session_export(config=self.config, snapshot=to_snapshot(self._state), logs=list(self._logs))
        return dumps_session_export(payload)
