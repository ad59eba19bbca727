"""Domain model package exports."""

from .catalog import (GENERIC_BACKEND, ArtifactFile, CatalogEntry,
                      ConfigDocument, GlobalStats, ModelDetail, ModelMetadata,
                      ModelState, ProgressEvent, normalize_model_id)
from .lifecycle import LifecycleState, LocalModelRecord, utcnow

__all__ = [
    "GENERIC_BACKEND",
    "ArtifactFile",
    "CatalogEntry",
    "ConfigDocument",
    "GlobalStats",
    "LifecycleState",
    "LocalModelRecord",
    "ModelDetail",
    "ModelMetadata",
    "ModelState",
    "ProgressEvent",
    "normalize_model_id",
    "utcnow",
]
