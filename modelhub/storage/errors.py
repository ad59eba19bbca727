"""Common repository errors used across storage adapters."""

from __future__ import annotations


class RepositoryError(RuntimeError):
    """Base class for storage layer failures."""


class NotDownloaded(RepositoryError):
    """Raised when activating a model id that has no local record."""

    def __init__(self, model_id: str) -> None:
        self.model_id = model_id
        super().__init__(f"model not downloaded: {model_id}")


class CacheStoreError(RepositoryError):
    """Raised when the catalog cache cannot be read or written."""


class StateStoreError(RepositoryError):
    """Raised when the lifecycle state file cannot be read or written."""


class LockTimeout(RepositoryError):
    """Raised when an exclusive lock cannot be acquired in time."""
