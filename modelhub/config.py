"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

Central configuration constants and runtime settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from modelhub.utils.env import read_flag, read_int, read_str

# Registry -------------------------------------------------------------------

DEFAULT_REGISTRY_URL = "https://huggingface.co"
"""Base URL of the remote model registry."""

DEFAULT_REVISION = "main"
"""Revision used for raw config and artifact downloads."""

DEFAULT_HTTP_TIMEOUT = 30
"""Per-request timeout in seconds for registry calls."""

DEFAULT_RATE_LIMIT = 5
"""Registry calls allowed per second."""

PIPELINE_TYPES = (
    "text-generation",
    "text2text-generation",
    "text-classification",
    "code",
    "conversational",
)
"""Pipeline categories offered for browsing."""

# Local storage --------------------------------------------------------------

DEFAULT_MODELS_DIR = "models"
STATE_FILENAME = "state.json"
CACHE_FILENAME = "catalog_cache.db"

# Inference backend ----------------------------------------------------------

DEFAULT_INFERENCE_URL = "http://localhost:8080"


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings for one process."""

    registry_url: str = DEFAULT_REGISTRY_URL
    models_dir: Path = Path(DEFAULT_MODELS_DIR)
    state_path: Optional[Path] = None
    cache_path: Optional[Path] = None
    inference_url: str = DEFAULT_INFERENCE_URL
    fetch_model_card: bool = True
    http_timeout: int = DEFAULT_HTTP_TIMEOUT
    rate_limit: int = DEFAULT_RATE_LIMIT

    @property
    def resolved_state_path(self) -> Path:
        return self.state_path or self.models_dir / STATE_FILENAME

    @property
    def resolved_cache_path(self) -> Path:
        return self.cache_path or self.models_dir / CACHE_FILENAME

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``MODELHUB_*`` environment variables."""

        models_dir = Path(read_str("MODELHUB_MODELS_DIR", DEFAULT_MODELS_DIR))
        state_raw = read_str("MODELHUB_STATE_PATH", "")
        cache_raw = read_str("MODELHUB_CACHE_PATH", "")
        return cls(
            registry_url=read_str(
                "MODELHUB_REGISTRY_URL", DEFAULT_REGISTRY_URL
            ).rstrip("/"),
            models_dir=models_dir,
            state_path=Path(state_raw) if state_raw else None,
            cache_path=Path(cache_raw) if cache_raw else None,
            inference_url=read_str(
                "MODELHUB_INFERENCE_URL", DEFAULT_INFERENCE_URL
            ).rstrip("/"),
            fetch_model_card=read_flag("MODELHUB_FETCH_MODEL_CARD", True),
            http_timeout=read_int("MODELHUB_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            rate_limit=max(1, read_int("MODELHUB_RATE_LIMIT", DEFAULT_RATE_LIMIT)),
        )
