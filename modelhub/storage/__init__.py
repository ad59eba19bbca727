"""Storage layer: catalog cache and lifecycle state."""

from .base import CatalogCache
from .cache_store import SQLiteCatalogCache
from .errors import (CacheStoreError, LockTimeout, NotDownloaded,
                     RepositoryError, StateStoreError)
from .locking import KeyedLocks, exclusive_lock
from .memory import InMemoryCatalogCache
from .state_store import LifecycleStateStore

__all__ = [
    "CatalogCache",
    "CacheStoreError",
    "InMemoryCatalogCache",
    "KeyedLocks",
    "LifecycleStateStore",
    "LockTimeout",
    "NotDownloaded",
    "RepositoryError",
    "SQLiteCatalogCache",
    "StateStoreError",
    "exclusive_lock",
]
