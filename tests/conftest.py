from __future__ import annotations

import pytest

from civiccare.core.storage.memory import SharedMemoryStore


class DummyLogger:
    def __init__(self):
        self.records = []

    def info(self, msg, *_a, **_k):
        self.records.append(("info", str(msg)))

    def warning(self, msg, *_a, **_k):
        self.records.append(("warning", str(msg)))

    def error(self, msg, *_a, **_k):
        self.records.append(("error", str(msg)))


@pytest.fixture
def logger():
    return DummyLogger()


@pytest.fixture
def shared():
    """Backing store shared by every simulated tab in a test."""
    return SharedMemoryStore()
