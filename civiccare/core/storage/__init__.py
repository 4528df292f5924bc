"""
Persistent key-value storage shared between contexts (tabs/processes).
"""

from civiccare.core.storage.base import KeyValueStore, StorageEvent
from civiccare.core.storage.file_store import FileStore
from civiccare.core.storage.memory import MemoryStore, SharedMemoryStore

__all__ = ["FileStore", "KeyValueStore", "MemoryStore", "SharedMemoryStore", "StorageEvent"]
