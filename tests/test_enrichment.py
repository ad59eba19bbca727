"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

Tests for metadata enrichment.
"""

from __future__ import annotations

from typing import Sequence

import pytest

from modelhub.models import (GENERIC_BACKEND, ArtifactFile, ConfigDocument,
                             ModelDetail)
from modelhub.services.enrichment import classify_files, enrich


def _detail(model_id: str, files: Sequence[str], size: int = 10) -> ModelDetail:
    return ModelDetail(
        id=model_id,
        content_hash="abc",
        files=tuple(ArtifactFile(name=name, size=size) for name in files),
    )


def test_gguf_and_safetensors_files() -> None:
    detail = _detail(
        "TheBloke/Mistral-7B-GGUF",
        ["model.Q4_K_M.gguf", "model.safetensors", "config.json"],
    )

    metadata = enrich(detail)

    assert metadata.has_gguf is True
    assert metadata.has_safetensors is True
    assert metadata.is_quantized is False
    assert metadata.compatible_backends == ("gguf", "transformers")
    assert metadata.llama_compatible is False
    assert metadata.total_download_bytes == 30


def test_gptq_marks_quantized() -> None:
    metadata = enrich(_detail("org/m", ["model-GPTQ-4bit.bin", "tokenizer.json"]))

    assert metadata.is_quantized is True
    assert "gptq" in metadata.compatible_backends


def test_first_matching_rule_wins() -> None:
    # A gptq-named safetensors file counts as gptq only.
    flags = classify_files(["model-gptq.safetensors", "model.GPTQ.gguf"])

    assert flags.is_quantized is True
    assert flags.has_safetensors is False
    assert flags.has_gguf is True
    assert flags.backends == {GENERIC_BACKEND, "gptq", "gguf"}


def test_onnx_backend() -> None:
    metadata = enrich(_detail("org/m", ["onnx/model.ONNX"]))

    assert metadata.compatible_backends == ("onnx", "transformers")


def test_no_files_still_lists_generic_backend() -> None:
    metadata = enrich(_detail("org/empty", []))

    assert metadata.compatible_backends == (GENERIC_BACKEND,)
    assert metadata.total_download_bytes == 0


@pytest.mark.parametrize(
    "model_id, config, expected",
    [
        ("org/TinyLlama-1.1B", None, True),
        ("org/mistral", None, False),
        (
            "org/custom",
            ConfigDocument(architectures=("LlamaForCausalLM",)),
            True,
        ),
        ("org/custom", ConfigDocument(model_type="llama"), True),
        ("org/custom", ConfigDocument(model_type="gpt2"), False),
    ],
)
def test_llama_detection(
    model_id: str, config: ConfigDocument, expected: bool
) -> None:
    assert enrich(_detail(model_id, []), config).llama_compatible is expected


def test_config_fields_are_copied() -> None:
    config = ConfigDocument(
        architectures=("MistralForCausalLM",),
        model_type="mistral",
        hidden_size=4096,
        n_layer=32,
        num_attention_heads=32,
    )

    metadata = enrich(_detail("org/m", ["config.json"]), config, model_card="# card")

    assert metadata.architecture_family == "mistral"
    assert metadata.hidden_size == 4096
    assert metadata.layer_count == 32
    assert metadata.attention_heads == 32
    assert metadata.model_card == "# card"


def test_missing_config_leaves_architecture_unset() -> None:
    metadata = enrich(_detail("org/m", ["config.json"]))

    assert metadata.architecture_family == ""
    assert metadata.hidden_size is None
    assert metadata.layer_count is None
    assert metadata.model_card is None


def test_enrich_is_deterministic() -> None:
    detail = _detail(
        "org/llama-mix", ["a.onnx", "b.gguf", "c-gptq.bin", "d.safetensors"]
    )

    assert enrich(detail) == enrich(detail)
    assert enrich(detail).compatible_backends == (
        "gguf",
        "gptq",
        "onnx",
        "transformers",
    )


def test_negative_sizes_do_not_reduce_total() -> None:
    detail = ModelDetail(
        id="org/m",
        files=(ArtifactFile("a.bin", 5), ArtifactFile("b.bin", -1)),
    )

    assert enrich(detail).total_download_bytes == 5
