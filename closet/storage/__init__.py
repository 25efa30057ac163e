from typing import Optional

from closet.core.config import settings
from closet.storage.base import ObjectStore
from closet.storage.memory import InMemoryObjectStore
from closet.storage.r2 import R2ObjectStore

__all__ = ["ObjectStore", "InMemoryObjectStore", "R2ObjectStore", "get_object_store"]

_store: Optional[ObjectStore] = None


def get_object_store() -> ObjectStore:
    global _store
    if _store is None:
        if (settings.STORAGE_BACKEND or "r2").lower() == "memory":
            _store = InMemoryObjectStore()
        else:
            _store = R2ObjectStore()
    return _store
