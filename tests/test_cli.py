"""Tests for the command-line interface."""

from __future__ import annotations

import io
from typing import Any

import pytest

from modelhub import cli
from modelhub.models import CatalogEntry, ConfigDocument
from modelhub.services.registry import ModelRegistry


def _run(registry: ModelRegistry, *argv: str) -> tuple[int, str]:
    out = io.StringIO()
    code = cli.main(list(argv), registry=registry, stdout=out)
    return code, out.getvalue()


@pytest.fixture()
def catalog(fake_catalog: Any) -> Any:
    fake_catalog.listings["text-generation"] = [
        CatalogEntry(id="org/a", last_modified="2024-01-01", downloads=10),
        CatalogEntry(id="org/b", last_modified="2024-01-02", downloads=20),
    ]
    fake_catalog.add_model("org/a", {"model.gguf": b"aa"}, sha="sha-a")
    fake_catalog.add_model("org/b", {"model.safetensors": b"b"}, sha="sha-b")
    fake_catalog.configs["org/a"] = ConfigDocument(model_type="llama")
    return fake_catalog


def test_list_marks_downloaded_models(registry: ModelRegistry, catalog: Any) -> None:
    registry.download("org/a")

    code, output = _run(registry, "list", "--pipeline", "text-generation")

    assert code == 0
    lines = output.splitlines()
    assert lines[0].startswith("MODEL ID")
    assert lines[1].split()[0] == "org/a*"
    assert lines[2].split() == ["org/b", "2024-01-02", "20"]


def test_list_rejects_unknown_pipeline(registry: ModelRegistry) -> None:
    with pytest.raises(SystemExit):
        _run(registry, "list", "--pipeline", "image-to-pixels")


def test_show_prints_enriched_metadata(registry: ModelRegistry, catalog: Any) -> None:
    code, output = _run(registry, "show", "org/a")

    assert code == 0
    assert "Backends: gguf, transformers" in output
    assert "LLaMA compatible: yes" in output
    assert "Architecture: llama" in output
    assert "State: cataloged" in output


def test_download_prints_progress(registry: ModelRegistry, catalog: Any) -> None:
    code, output = _run(registry, "download", "org/a")

    assert code == 0
    assert "org/a: 1/1" in output
    assert "Downloaded org/a" in output
    assert "org/a" in registry.local_models().records


def test_download_skips_existing_unless_forced(
    registry: ModelRegistry, catalog: Any
) -> None:
    registry.download("org/a")

    _, skipped = _run(registry, "download", "org/a")
    _, forced = _run(registry, "download", "org/a", "--force")

    assert "Skipping org/a already downloaded" in skipped
    assert "Downloaded org/a" in forced


def test_download_all_requires_pipeline(
    registry: ModelRegistry, capsys: pytest.CaptureFixture[str]
) -> None:
    code, _ = _run(registry, "download", "--all")

    assert code == 1
    assert "--all requires --pipeline" in capsys.readouterr().err


def test_download_all(registry: ModelRegistry, catalog: Any) -> None:
    registry.download("org/a")

    code, output = _run(
        registry, "download", "--all", "--pipeline", "text-generation"
    )

    assert code == 0
    assert "Downloaded org/b" in output
    assert "Downloaded org/a" not in output


def test_use_and_status(registry: ModelRegistry, catalog: Any, fake_loader: Any) -> None:
    registry.download("org/a")

    code, output = _run(registry, "use", "org/a")
    assert code == 0
    assert "Active model: org/a" in output
    assert fake_loader.loaded == []

    _, status = _run(registry, "status")
    assert "Active model: org/a" in status
    assert "Version: sha-a" in status


def test_use_with_load_calls_inference_server(
    registry: ModelRegistry, catalog: Any, fake_loader: Any
) -> None:
    record = registry.download("org/a")

    _run(registry, "use", "org/a", "--load")

    assert fake_loader.loaded == [record.local_path]


def test_use_unknown_model_fails(
    registry: ModelRegistry, capsys: pytest.CaptureFixture[str]
) -> None:
    code, _ = _run(registry, "use", "org/ghost")

    assert code == 1
    assert "model not downloaded: org/ghost" in capsys.readouterr().err


def test_status_without_active_model(registry: ModelRegistry) -> None:
    code, output = _run(registry, "status")

    assert code == 0
    assert "No active model set" in output


def test_registry_failure_is_reported(
    registry: ModelRegistry, fake_catalog: Any, capsys: pytest.CaptureFixture[str]
) -> None:
    fake_catalog.offline = True

    code, _ = _run(registry, "list", "--pipeline", "text-generation")

    assert code == 1
    assert "Error:" in capsys.readouterr().err


def test_stats(registry: ModelRegistry, fake_catalog: Any) -> None:
    fake_catalog.total_models = 42

    code, output = _run(registry, "stats")

    assert code == 0
    assert "Total models: 42" in output
