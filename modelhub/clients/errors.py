"""Errors raised by outbound service clients."""

from __future__ import annotations


class CatalogError(RuntimeError):
    """Base class for registry client failures."""


class RegistryUnavailable(CatalogError):
    """Raised when the registry cannot be reached (DNS, connect, timeout).

    Callers may retry; the client never retries on its own.
    """


class RegistryError(CatalogError):
    """Raised when the registry answers with a non-success status."""

    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Registry returned HTTP {status}: {body}")


class StatsUnavailable(CatalogError):
    """Raised when the registry does not expose a total-count signal."""


class InferenceLoadError(RuntimeError):
    """Raised when the inference server refuses or fails to load a model."""
