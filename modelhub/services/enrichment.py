"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

Derive format and compatibility metadata from a model's files and config.

``enrich`` is a pure function: identical inputs always give an identical
``ModelMetadata`` (backends are emitted sorted), which lets the registry
write its result straight into the cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from modelhub.models import (GENERIC_BACKEND, ConfigDocument, ModelDetail,
                             ModelMetadata)

LLAMA_KEYWORD = "llama"


@dataclass
class _FileFlags:
    is_quantized: bool = False
    has_gguf: bool = False
    has_safetensors: bool = False
    backends: set[str] = field(default_factory=lambda: {GENERIC_BACKEND})


def classify_files(filenames: Iterable[str]) -> _FileFlags:
    """Apply the first matching rule to each filename (case-insensitive)."""

    flags = _FileFlags()
    for filename in filenames:
        name = filename.lower()
        if name.endswith(".gguf"):
            flags.has_gguf = True
            flags.backends.add("gguf")
        elif "gptq" in name:
            flags.is_quantized = True
            flags.backends.add("gptq")
        elif name.endswith(".safetensors"):
            flags.has_safetensors = True
        elif name.endswith(".onnx"):
            flags.backends.add("onnx")
    return flags


def _mentions_llama(values: Iterable[str]) -> bool:
    return any(LLAMA_KEYWORD in value.lower() for value in values)


def enrich(
    detail: ModelDetail,
    config: Optional[ConfigDocument] = None,
    *,
    model_card: Optional[str] = None,
) -> ModelMetadata:
    """Return ``detail`` extended with derived flags.

    A missing ``config`` leaves the architecture fields unset; id-based LLaMA
    detection still applies.
    """

    flags = classify_files(detail.filenames)
    total_bytes = sum(max(artifact.size, 0) for artifact in detail.files)

    architecture_family = ""
    hidden_size: Optional[int] = None
    layer_count: Optional[int] = None
    attention_heads: Optional[int] = None
    llama_compatible = False

    if config is not None:
        architecture_family = config.model_type
        hidden_size = config.hidden_size
        layer_count = config.n_layer
        attention_heads = config.num_attention_heads
        llama_compatible = _mentions_llama(
            (*config.architectures, config.model_type)
        )

    if LLAMA_KEYWORD in detail.id.lower():
        llama_compatible = True

    return ModelMetadata(
        id=detail.id,
        last_modified=detail.last_modified,
        downloads=detail.downloads,
        tags=detail.tags,
        content_hash=detail.content_hash,
        files=detail.files,
        license=detail.license or None,
        is_quantized=flags.is_quantized,
        has_gguf=flags.has_gguf,
        has_safetensors=flags.has_safetensors,
        compatible_backends=tuple(sorted(flags.backends)),
        llama_compatible=llama_compatible,
        architecture_family=architecture_family,
        hidden_size=hidden_size,
        layer_count=layer_count,
        attention_heads=attention_heads,
        model_card=model_card or None,
        total_download_bytes=total_bytes,
    )
