from __future__ import annotations

import json
import os
import threading
import time
from typing import Any, Dict, Optional


# Field names whose values never reach a log: the session token (and its
# storage key / HTTP header), passwords, and the Aadhaar identifier.
SECRET_FIELDS = frozenset({"token", "authtoken", "authorization", "password", "aadhaar"})
REDACTED = "***REDACTED***"


def redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: (REDACTED if str(k).lower() in SECRET_FIELDS else redact(v)) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [redact(x) for x in obj]
    return obj


class EventLogger:
    """
    Append-only JSONL log of session events (init, login, logout, cross-tab).
    One line per event: {"ts", "trace_id", "event", "details"}.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def log(self, trace_id: str, event_type: str, details: Optional[Dict[str, Any]] = None) -> None:
        record = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "trace_id": trace_id,
            "event": event_type,
            "details": redact(details or {}),
        }
        line = json.dumps(record, ensure_ascii=False)
        with self._lock:
            folder = os.path.dirname(self.path)
            if folder:
                os.makedirs(folder, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
