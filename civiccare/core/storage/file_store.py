from __future__ import annotations

import contextlib
import fcntl
import os
import threading
from typing import Dict, Iterator, List, Optional

from civiccare.core.config.io import atomic_write_json, quarantine_corrupt, read_json_file
from civiccare.core.errors import StorageError
from civiccare.core.storage.base import KeyValueStore, StorageEvent


class FileStore(KeyValueStore):
    """
    Key-value store persisted as one JSON object on disk.

    Several processes may share the same file. Each FileStore remembers the
    last contents it saw; poll_once() diffs the file against that snapshot
    and notifies subscribers of keys changed by someone else. The optional
    watcher thread calls poll_once() on an interval.
    """

    def __init__(self, *, state_dir: str, filename: str = "storage.json", poll_interval_ms: int = 500, logger=None):
        super().__init__(logger=logger)
        self.state_dir = state_dir
        self.path = os.path.join(state_dir, filename)
        self.lock_path = self.path + ".lock"
        self.backups_dir = os.path.join(state_dir, "backups")
        self.poll_interval_ms = int(poll_interval_ms)
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._known: Dict[str, str] = self._load()

    # ---------- KeyValueStore ----------
    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock, self._exclusive():
            data = self._load()
            pending = self._diff(self._known, data, skip=key)
            data[key] = str(value)
            self._write(data)
        for ev in pending:
            self._notify(ev)

    def remove(self, key: str) -> None:
        with self._lock, self._exclusive():
            data = self._load()
            pending = self._diff(self._known, data, skip=key)
            if key in data:
                del data[key]
                self._write(data)
            else:
                self._known = dict(data)
        for ev in pending:
            self._notify(ev)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._load().keys())

    # ---------- change detection ----------
    def poll_once(self) -> List[StorageEvent]:
        """
        Emit events for every key whose value differs from the last snapshot.
        """
        with self._lock:
            current = self._load()
            events = self._diff(self._known, current)
            self._known = current
        for ev in events:
            self._notify(ev)
        return events

    @staticmethod
    def _diff(before: Dict[str, str], after: Dict[str, str], *, skip: Optional[str] = None) -> List[StorageEvent]:
        events: List[StorageEvent] = []
        for key in sorted(set(before) | set(after)):
            if key == skip:
                continue
            old = before.get(key)
            new = after.get(key)
            if old != new:
                events.append(StorageEvent(key=key, old_value=old, new_value=new))
        return events

    def start_watching(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._poll_loop, name="storage-watcher", daemon=True)
        self._thread.start()

    def stop_watching(self) -> None:
        self._stop.set()
        t = self._thread
        if t is not None and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=2.0)
        self._thread = None

    def close(self) -> None:
        self.stop_watching()
        super().close()

    def _poll_loop(self) -> None:
        interval = max(0.05, float(self.poll_interval_ms) / 1000.0)
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception as e:  # noqa: BLE001
                if self.logger:
                    self.logger.warning(f"Storage watcher error: {e}")
            self._stop.wait(interval)

    # ---- internals ----
    @contextlib.contextmanager
    def _exclusive(self) -> Iterator[None]:
        """
        Hold an flock on the sidecar lock file for one read-modify-write, so
        writers in other processes cannot interleave with it.
        """
        try:
            os.makedirs(self.state_dir, exist_ok=True)
            fd = os.open(self.lock_path, os.O_CREAT | os.O_RDWR)
        except OSError as e:
            raise StorageError("Unable to lock local storage.", path=self.lock_path, error=str(e)) from e
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def _load(self) -> Dict[str, str]:
        rr = read_json_file(self.path)
        if rr.ok:
            return {str(k): str(v) for k, v in rr.data.items() if v is not None}
        if rr.error == "missing":
            return {}
        if rr.error and (rr.error.startswith("corrupt_json") or rr.error == "not_object"):
            moved = quarantine_corrupt(self.path, self.backups_dir)
            if self.logger:
                self.logger.warning(f"Storage file unreadable ({rr.error}); starting empty. Moved to: {moved}")
            return {}
        raise StorageError("Unable to read local storage.", path=self.path, error=rr.error)

    def _write(self, data: Dict[str, str]) -> None:
        try:
            atomic_write_json(self.path, data, indent=None)
        except OSError as e:
            raise StorageError("Unable to write local storage.", path=self.path, error=str(e)) from e
        # own writes are not reported back to this context
        self._known = dict(data)
