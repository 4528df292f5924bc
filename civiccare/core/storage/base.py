from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, List, Optional


@dataclass(frozen=True)
class StorageEvent:
    """
    A change made to the shared store by another context.

    new_value is None when the key was removed.
    """

    key: str
    old_value: Optional[str]
    new_value: Optional[str]


StorageListener = Callable[[StorageEvent], None]
Unsubscribe = Callable[[], None]


class KeyValueStore:
    """
    Synchronous string key-value store shared by several contexts.

    Writes made through this object never notify this object's own
    subscribers; only writes from other contexts do.
    """

    def __init__(self, *, logger=None):
        self.logger = logger
        self._listeners: List[StorageListener] = []
        self._listeners_lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def subscribe(self, listener: StorageListener) -> Unsubscribe:
        if not callable(listener):
            raise ValueError("listener must be callable")
        with self._listeners_lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._listeners_lock:
                try:
                    self._listeners.remove(listener)
                except ValueError:
                    pass

        return _unsubscribe

    def close(self) -> None:
        """Release the store. Listeners are dropped."""
        with self._listeners_lock:
            self._listeners.clear()

    def listener_count(self) -> int:
        with self._listeners_lock:
            return len(self._listeners)

    def _notify(self, ev: StorageEvent) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(ev)
            except Exception as e:  # noqa: BLE001
                if self.logger:
                    self.logger.error(f"Storage listener failed for key {ev.key!r}: {e}")
