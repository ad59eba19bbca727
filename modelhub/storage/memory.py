"""In-memory catalog cache for development and tests."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Sequence

from modelhub.models import CatalogEntry, ModelMetadata

from .base import CatalogCache


class InMemoryCatalogCache(CatalogCache):
    """Dictionary-backed cache with the same upsert semantics as SQLite."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listings: Dict[str, Dict[str, CatalogEntry]] = {}
        self._metadata: Dict[str, tuple[str, ModelMetadata]] = {}

    def get_list(self, pipeline: str) -> Optional[list[CatalogEntry]]:
        with self._lock:
            rows = self._listings.get(pipeline)
            if not rows:
                return None
            return list(rows.values())

    def put_list(self, pipeline: str, entries: Sequence[CatalogEntry]) -> None:
        with self._lock:
            rows = self._listings.setdefault(pipeline, {})
            for entry in entries:
                # Re-inserting moves the key to the end, matching the
                # SQLite store's "latest write order" ordering.
                rows.pop(entry.id, None)
                rows[entry.id] = entry

    def get_metadata(self, model_id: str) -> Optional[ModelMetadata]:
        with self._lock:
            stored = self._metadata.get(model_id)
            return stored[1] if stored else None

    def put_metadata(self, pipeline_hint: str, metadata: ModelMetadata) -> None:
        with self._lock:
            self._metadata[metadata.id] = (pipeline_hint, metadata)

    def contains(self, model_id: str) -> bool:
        with self._lock:
            if model_id in self._metadata:
                return True
            return any(model_id in rows for rows in self._listings.values())
