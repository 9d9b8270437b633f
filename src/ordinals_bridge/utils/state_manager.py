"""
State management utilities for the bridge API.

This module provides a small file-backed key/value store standing in for
browser local storage, and the manager that keeps the single in-flight
bridge state in it.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from ..models import BridgeState, BridgeStatus, now_ms

logger = logging.getLogger(__name__)


class LocalStorage:
    """
    JSON file holding string keys mapped to JSON values.

    Every write rewrites the whole file. There is no locking; the last
    writer wins.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        data = self.path.read_text(encoding="utf-8")
        if not data.strip():
            return {}
        return json.loads(data)

    def _dump(self, items: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(items, indent=2), encoding="utf-8")

    def get_item(self, key: str) -> Optional[Any]:
        return self._load().get(key)

    def set_item(self, key: str, value: Any) -> None:
        items = self._load()
        items[key] = value
        self._dump(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if items.pop(key, None) is not None:
            self._dump(items)


class BridgeStateManager:
    """
    Keeps the current bridge operation under a fixed storage key.

    States older than ``EXPIRY_TIME`` are discarded on read.
    """

    STORAGE_KEY = "BRIDGE_STATE"
    EXPIRY_TIME = 7 * 24 * 60 * 60 * 1000  # 7 days in ms

    def __init__(self, storage: LocalStorage, clock: Callable[[], int] = now_ms):
        """
        Initialize the state manager.

        Args:
            storage: Key/value store to persist into
            clock: Millisecond clock, replaceable in tests
        """
        self.storage = storage
        self.clock = clock

    def save_bridge_state(self, state: BridgeState) -> BridgeState:
        """
        Overwrite the stored state, stamping it with the current time.

        Returns:
            The state as stored
        """
        data = state.to_dict()
        data["timestamp"] = self.clock()
        self.storage.set_item(self.STORAGE_KEY, data)
        return BridgeState.from_dict(data)

    def get_bridge_state(self) -> Optional[BridgeState]:
        """
        Get the stored state, clearing it when expired.

        Returns:
            Current state, or None when absent or expired
        """
        data = self.storage.get_item(self.STORAGE_KEY)
        if not data:
            return None

        state = BridgeState.from_dict(data)
        if self.clock() - state.timestamp > self.EXPIRY_TIME:
            logger.info(f"Bridge state for {state.inscription_id} expired, clearing")
            self.clear_bridge_state()
            return None

        return state

    def clear_bridge_state(self) -> None:
        self.storage.remove_item(self.STORAGE_KEY)

    def update_bridge_status(self, status: BridgeStatus, error: str | None = None) -> None:
        """
        Replace status and error on the stored state.

        Does nothing when no state is stored.
        """
        state = self.get_bridge_state()
        if state is None:
            return

        data = state.to_dict()
        data["status"] = status.value
        data.pop("error", None)
        if error is not None:
            data["error"] = error
        self.save_bridge_state(BridgeState.from_dict(data))
