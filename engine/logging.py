"""engine.logging

Small helpers for storing transition logs.

A transition log is JSON-serializable so a session can be exported and
inspected later. Diagnostics (warnings about clamped input, corrupt saves)
go through the stdlib `logging` module in the modules that detect them.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from core.state import GameState

from .config import EngineConfig


def state_summary(state: GameState) -> Dict[str, Any]:
    return {
        "currency": float(state.currency),
        "production_rate": float(state.production_rate),
        "levels": {int(u.id): int(u.level) for u in state.upgrades},
        "prestige_points": int(state.prestige_points),
        "total_earnings": float(state.total_earnings),
    }


def make_transition_log(
    *,
    command: str,
    before: GameState,
    after: GameState,
    ok: bool = True,
    reason: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "command": str(command),
        "ok": bool(ok),
        "reason": reason,
        "at": float(after.last_update_timestamp),
        "before": state_summary(before),
        "after": state_summary(after),
        "details": dict(details or {}),
    }


def make_session_export(
    *,
    config: EngineConfig,
    snapshot: Dict[str, Any],
    logs: List[Dict[str, Any]],
) -> Dict[str, Any]:
    return {
        "version": 1,
        "config": asdict(config),
        "snapshot": dict(snapshot),
        "logs": list(logs),
    }


def dumps_session_export(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=True)
