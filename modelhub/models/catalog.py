"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

Catalog records produced from the remote registry and their enriched form.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

GENERIC_BACKEND = "transformers"
"""Backend tag every model is considered compatible with."""


def normalize_model_id(model_id: str) -> str:
    """Return the canonical ``org/name`` form of a repository id.

    Surrounding whitespace and slashes are stripped. Empty ids, empty or
    dot segments and backslashes are rejected with ``ValueError``, so the
    result is always a relative path below any directory it is joined to.
    """

    trimmed = model_id.strip().strip("/")
    if not trimmed:
        raise ValueError("Model identifier cannot be empty.")
    if "\\" in trimmed or any(
        segment in ("", ".", "..") for segment in trimmed.split("/")
    ):
        raise ValueError(f"Invalid model identifier: {model_id}")
    return trimmed


class ModelState(str, Enum):
    """Lifecycle position of a model id as observed locally."""

    UNKNOWN = "unknown"
    CATALOGED = "cataloged"
    DOWNLOADED = "downloaded"
    ACTIVE = "active"


@dataclass(frozen=True)
class CatalogEntry:
    """Summary row returned by a pipeline listing query."""

    id: str
    last_modified: str = ""
    downloads: int = 0
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Catalog entry id cannot be empty")

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lastModified": self.last_modified,
            "downloads": self.downloads,
            "tags": list(self.tags),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CatalogEntry":
        model_id = payload.get("id") or payload.get("modelId") or ""
        return cls(
            id=str(model_id),
            last_modified=str(payload.get("lastModified") or ""),
            downloads=_as_int(payload.get("downloads")),
            tags=_as_str_tuple(payload.get("tags")),
        )


@dataclass(frozen=True)
class ArtifactFile:
    """A single file belonging to a model revision."""

    name: str
    size: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {"rfilename": self.name, "size": self.size}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ArtifactFile":
        return cls(
            name=str(payload.get("rfilename") or payload.get("name") or ""),
            size=_as_int(payload.get("size")),
        )


@dataclass(frozen=True)
class ModelDetail(CatalogEntry):
    """Revision information for one model: content hash and file list."""

    content_hash: str = ""
    files: tuple[ArtifactFile, ...] = ()
    license: Optional[str] = None

    @property
    def filenames(self) -> list[str]:
        return [artifact.name for artifact in self.files]

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload.update(
            {
                "sha": self.content_hash,
                "files": self.filenames,
                "siblings": [artifact.to_payload() for artifact in self.files],
            }
        )
        if self.license:
            payload["license"] = self.license
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ModelDetail":
        """Build a detail record from the registry's ``/api/models/<id>`` body."""

        entry = CatalogEntry.from_payload(payload)
        siblings = payload.get("siblings")
        if isinstance(siblings, list):
            files = tuple(
                ArtifactFile.from_payload(item)
                for item in siblings
                if isinstance(item, Mapping) and item.get("rfilename")
            )
        else:
            files = tuple(
                ArtifactFile(name=name)
                for name in _as_str_tuple(payload.get("files"))
            )
        card_data = payload.get("cardData")
        license_value: Optional[str] = None
        if isinstance(card_data, Mapping) and card_data.get("license"):
            license_value = str(card_data["license"])
        elif payload.get("license"):
            license_value = str(payload["license"])
        return cls(
            id=entry.id,
            last_modified=entry.last_modified,
            downloads=entry.downloads,
            tags=entry.tags,
            content_hash=str(payload.get("sha") or ""),
            files=files,
            license=license_value,
        )


@dataclass(frozen=True)
class ConfigDocument:
    """Architecture description read from a revision's ``config.json``."""

    architectures: tuple[str, ...] = ()
    model_type: str = ""
    hidden_size: Optional[int] = None
    n_layer: Optional[int] = None
    num_attention_heads: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ConfigDocument":
        n_layer = payload.get("n_layer")
        if n_layer is None:
            n_layer = payload.get("num_hidden_layers")
        return cls(
            architectures=_as_str_tuple(payload.get("architectures")),
            model_type=str(payload.get("model_type") or ""),
            hidden_size=_as_optional_int(payload.get("hidden_size")),
            n_layer=_as_optional_int(n_layer),
            num_attention_heads=_as_optional_int(
                payload.get("num_attention_heads")
            ),
        )


@dataclass(frozen=True)
class ModelMetadata(ModelDetail):
    """Model detail plus flags derived from its files and configuration."""

    is_quantized: bool = False
    has_gguf: bool = False
    has_safetensors: bool = False
    compatible_backends: tuple[str, ...] = (GENERIC_BACKEND,)
    llama_compatible: bool = False
    architecture_family: str = ""
    hidden_size: Optional[int] = None
    layer_count: Optional[int] = None
    attention_heads: Optional[int] = None
    model_card: Optional[str] = None
    total_download_bytes: int = 0

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload.update(
            {
                "llamaCompatible": self.llama_compatible,
                "model_type": self.architecture_family,
                "hidden_size": self.hidden_size,
                "n_layer": self.layer_count,
                "num_attention_heads": self.attention_heads,
                "quantized": self.is_quantized,
                "gguf_available": self.has_gguf,
                "safetensors_available": self.has_safetensors,
                "compatible_backends": list(self.compatible_backends),
                "license": self.license,
                "model_card": self.model_card,
                "download_size": self.total_download_bytes,
            }
        )
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ModelMetadata":
        detail = ModelDetail.from_payload(payload)
        backends = _as_str_tuple(payload.get("compatible_backends"))
        return cls(
            id=detail.id,
            last_modified=detail.last_modified,
            downloads=detail.downloads,
            tags=detail.tags,
            content_hash=detail.content_hash,
            files=detail.files,
            license=detail.license,
            is_quantized=bool(payload.get("quantized")),
            has_gguf=bool(payload.get("gguf_available")),
            has_safetensors=bool(payload.get("safetensors_available")),
            compatible_backends=backends or (GENERIC_BACKEND,),
            llama_compatible=bool(payload.get("llamaCompatible")),
            architecture_family=str(payload.get("model_type") or ""),
            hidden_size=_as_optional_int(payload.get("hidden_size")),
            layer_count=_as_optional_int(payload.get("n_layer")),
            attention_heads=_as_optional_int(
                payload.get("num_attention_heads")
            ),
            model_card=payload.get("model_card") or None,
            total_download_bytes=_as_int(payload.get("download_size")),
        )


@dataclass(frozen=True)
class GlobalStats:
    """Registry-wide counters."""

    total_models: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {"total_models": self.total_models}


@dataclass
class ProgressEvent:
    """One step of a download as relayed to streaming callers."""

    done: int
    total: int

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return int(self.done / self.total * 100)


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(item) for item in value if item is not None)
