"""Abstract repository interfaces for the local catalog cache."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from modelhub.models import CatalogEntry, ModelMetadata


class CatalogCache(Protocol):
    """Upsert-only cache of listings (by pipeline) and metadata (by id).

    No entry ever expires; freshness is the caller's decision.
    """

    def get_list(self, pipeline: str) -> Optional[list[CatalogEntry]]:
        """Return cached rows for ``pipeline`` or None when nothing is cached."""

    def put_list(self, pipeline: str, entries: Sequence[CatalogEntry]) -> None:
        """Insert or replace rows key-by-key; rows not in ``entries`` stay."""

    def get_metadata(self, model_id: str) -> Optional[ModelMetadata]:
        """Return the enriched record for ``model_id`` or None."""

    def put_metadata(self, pipeline_hint: str, metadata: ModelMetadata) -> None:
        """Insert or replace the enriched record for ``metadata.id``."""

    def contains(self, model_id: str) -> bool:
        """Return True when any listing or metadata row names ``model_id``."""
