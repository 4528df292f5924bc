from __future__ import annotations

import threading
from typing import Dict, List, Optional

from civiccare.core.storage.base import KeyValueStore, StorageEvent


class SharedMemoryStore:
    """
    One in-process backing dict shared by any number of MemoryStore views.

    Each view plays the part of a browser tab: a write through one view is
    delivered synchronously to the subscribers of every other view.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._lock = threading.RLock()
        self._data: Dict[str, str] = dict(initial or {})
        self._views: List["MemoryStore"] = []

    def view(self, *, logger=None) -> "MemoryStore":
        v = MemoryStore(self, logger=logger)
        with self._lock:
            self._views.append(v)
        return v

    def detach(self, view: "MemoryStore") -> None:
        with self._lock:
            self._views = [v for v in self._views if v is not view]

    def views(self) -> List["MemoryStore"]:
        with self._lock:
            return list(self._views)

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)

    def _read(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def _write(self, origin: "MemoryStore", key: str, value: Optional[str]) -> None:
        with self._lock:
            old = self._data.get(key)
            if value is None:
                if key not in self._data:
                    return
                del self._data[key]
            else:
                if old == value:
                    return
                self._data[key] = value
            others = [v for v in self._views if v is not origin]
        ev = StorageEvent(key=key, old_value=old, new_value=value)
        for v in others:
            v._notify(ev)


class MemoryStore(KeyValueStore):
    def __init__(self, shared: SharedMemoryStore, *, logger=None):
        super().__init__(logger=logger)
        self.shared = shared

    def get(self, key: str) -> Optional[str]:
        return self.shared._read(key)

    def set(self, key: str, value: str) -> None:
        self.shared._write(self, key, str(value))

    def remove(self, key: str) -> None:
        self.shared._write(self, key, None)

    def close(self) -> None:
        super().close()
        self.shared.detach(self)
