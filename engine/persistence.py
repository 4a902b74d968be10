"""engine.persistence

Snapshot stores. The engine only needs `load()` at startup and periodic
`save()`; both are injected so nothing in the engine touches a global.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    def load(self) -> Optional[Dict[str, Any]]: ...

    def save(self, snapshot: Dict[str, Any]) -> None: ...

    def clear(self) -> None: ...


class MemoryStore:
    """In-process store for tests and headless runs."""

    def __init__(self, snapshot: Optional[Dict[str, Any]] = None) -> None:
        self.snapshot = snapshot
        self.saves = 0

    def load(self) -> Optional[Dict[str, Any]]:
        return None if self.snapshot is None else json.loads(json.dumps(self.snapshot))

    def save(self, snapshot: Dict[str, Any]) -> None:
        self.snapshot = json.loads(json.dumps(snapshot))
        self.saves += 1

    def clear(self) -> None:
        self.snapshot = None


class JsonFileStore:
    """JSON file on disk, written atomically (tmp + rename).

    A missing or unreadable file loads as None; I/O errors on save are
    logged, never raised, so a full disk cannot take the game loop down.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("could not read save file %s: %s", self.path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("save file %s does not hold an object, ignoring", self.path)
            return None
        return data

    def save(self, snapshot: Dict[str, Any]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as e:
            logger.error("could not write save file %s: %s", self.path, e)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("could not remove save file %s: %s", self.path, e)
