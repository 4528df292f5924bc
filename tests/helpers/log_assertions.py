from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterable, List


def read_jsonl(path: str) -> List[Dict[str, Any]]:
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def session_event_names(path: str) -> List[str]:
    return [str(e.get("event")) for e in read_jsonl(path)]


def assert_no_secret_leak(records: Iterable[Dict[str, Any]], *secrets: str) -> None:
    """Secrets never appear in a log; the redaction marker does."""
    blob = json.dumps(list(records), ensure_ascii=False)
    for s in secrets:
        assert s not in blob, f"secret leaked: {s[:4]}..."
    assert "***REDACTED***" in blob
