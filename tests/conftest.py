"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

Shared fixtures: HTTP doubles, a fake registry and a wired ModelRegistry.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
import requests

from modelhub.clients.errors import (InferenceLoadError, RegistryError,
                                     RegistryUnavailable, StatsUnavailable)
from modelhub.models import (ArtifactFile, CatalogEntry, ConfigDocument,
                             GlobalStats, ModelDetail)
from modelhub.services.downloader import ModelDownloader
from modelhub.services.registry import ModelRegistry
from modelhub.storage import InMemoryCatalogCache, LifecycleStateStore

_MISSING = object()


class FakeResponse:
    """Just enough of ``requests.Response`` for the clients."""

    def __init__(
        self,
        status_code: int = 200,
        *,
        json_data: Any = _MISSING,
        text: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        chunks: Optional[List[bytes]] = None,
        fail_after_chunks: Optional[int] = None,
    ) -> None:
        self.status_code = status_code
        self._json = json_data
        self._text = text
        self.headers = headers or {}
        self._chunks = chunks or []
        self._fail_after = fail_after_chunks
        self.encoding: Optional[str] = None
        self.closed = False

    @property
    def text(self) -> str:
        if self._text is not None:
            return self._text
        if self._json is not _MISSING:
            return repr(self._json)
        return ""

    def json(self) -> Any:
        if self._json is _MISSING:
            raise ValueError("No JSON body")
        return self._json

    def iter_content(self, chunk_size: int = 1) -> Any:
        for index, chunk in enumerate(self._chunks):
            if self._fail_after is not None and index >= self._fail_after:
                raise requests.ConnectionError("connection reset by peer")
            yield chunk

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def close(self) -> None:
        self.closed = True


Handler = Any


class FakeSession:
    """Route table keyed by URL (and optionally query params)."""

    def __init__(self) -> None:
        self._routes: List[Tuple[str, str, Optional[Dict[str, Any]], Handler]] = []
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    def add(
        self,
        url: str,
        handler: Handler,
        *,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._routes.append((method, url, params, handler))

    def _dispatch(self, method: str, url: str, kwargs: Dict[str, Any]) -> Any:
        self.calls.append((method, url, kwargs))
        for route_method, route_url, params, handler in self._routes:
            if route_method != method or route_url != url:
                continue
            if params is not None and params != kwargs.get("params"):
                continue
            if isinstance(handler, BaseException):
                raise handler
            if isinstance(handler, list):
                return handler.pop(0)
            if callable(handler):
                return handler(**kwargs)
            return handler
        return FakeResponse(404, text="Not Found")

    def get(self, url: str, **kwargs: Any) -> Any:
        return self._dispatch("GET", url, kwargs)

    def post(self, url: str, **kwargs: Any) -> Any:
        return self._dispatch("POST", url, kwargs)


class FakeCatalogClient:
    """In-memory registry implementing the catalog and artifact protocols."""

    def __init__(self) -> None:
        self.listings: Dict[str, List[CatalogEntry]] = {}
        self.details: Dict[str, ModelDetail] = {}
        self.configs: Dict[str, ConfigDocument] = {}
        self.cards: Dict[str, str] = {}
        self.contents: Dict[Tuple[str, str], bytes] = {}
        self.failing_files: set[Tuple[str, str]] = set()
        self.total_models: Optional[int] = None
        self.offline = False
        self.calls: List[Tuple[str, ...]] = []

    def _call(self, *call: str) -> None:
        self.calls.append(call)
        if self.offline:
            raise RegistryUnavailable("registry unreachable: offline")

    def calls_of(self, kind: str) -> List[Tuple[str, ...]]:
        return [call for call in self.calls if call[0] == kind]

    def add_model(
        self,
        model_id: str,
        files: Dict[str, bytes],
        *,
        sha: str = "sha-1",
        downloads: int = 0,
    ) -> ModelDetail:
        detail = ModelDetail(
            id=model_id,
            last_modified="2024-01-01T00:00:00.000Z",
            downloads=downloads,
            content_hash=sha,
            files=tuple(
                ArtifactFile(name=name, size=len(body))
                for name, body in files.items()
            ),
        )
        self.details[model_id] = detail
        for name, body in files.items():
            self.contents[(model_id, name)] = body
        return detail

    def list_by_pipeline(self, pipeline: str) -> List[CatalogEntry]:
        self._call("list", pipeline)
        return list(self.listings.get(pipeline, []))

    def fetch_detail(self, model_id: str) -> ModelDetail:
        self._call("detail", model_id)
        if model_id not in self.details:
            raise RegistryError(404, "Repository not found")
        return self.details[model_id]

    def fetch_global_stats(self) -> GlobalStats:
        self._call("stats")
        if self.total_models is None:
            raise StatsUnavailable("total count header missing")
        return GlobalStats(total_models=self.total_models)

    def fetch_secondary_config(self, model_id: str) -> Optional[ConfigDocument]:
        self.calls.append(("config", model_id))
        if self.offline:
            return None
        return self.configs.get(model_id)

    def fetch_model_card(self, model_id: str) -> Optional[str]:
        self.calls.append(("card", model_id))
        if self.offline:
            return None
        return self.cards.get(model_id)

    def open_artifact(self, model_id: str, filename: str) -> FakeResponse:
        self._call("artifact", model_id, filename)
        if (model_id, filename) in self.failing_files:
            raise RegistryUnavailable(f"connection reset while fetching {filename}")
        return FakeResponse(chunks=[self.contents[(model_id, filename)]])


class FakeLoader:
    """Inference loader double that records requested paths."""

    def __init__(self) -> None:
        self.loaded: List[str] = []
        self.fail = False

    def load_model(self, path: str) -> None:
        if self.fail:
            raise InferenceLoadError("server rejected model")
        self.loaded.append(path)


@pytest.fixture(autouse=True)
def _isolated_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
) -> None:
    """Keep tests away from the developer's .env and model directory."""

    from modelhub.utils import env

    monkeypatch.setattr(env, "_ENV_LOADED", True)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FILE", raising=False)
    models_dir = tmp_path_factory.mktemp("models-env")
    monkeypatch.setenv("MODELHUB_MODELS_DIR", str(models_dir))
    for name in (
        "MODELHUB_REGISTRY_URL",
        "MODELHUB_STATE_PATH",
        "MODELHUB_CACHE_PATH",
        "MODELHUB_INFERENCE_URL",
        "MODELHUB_FETCH_MODEL_CARD",
        "MODELHUB_HTTP_TIMEOUT",
        "MODELHUB_RATE_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def response_factory() -> Callable[..., FakeResponse]:
    return FakeResponse


@pytest.fixture()
def fake_catalog() -> FakeCatalogClient:
    return FakeCatalogClient()


@pytest.fixture()
def fake_loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture()
def models_root(tmp_path: Path) -> Path:
    return tmp_path / "models"


@pytest.fixture()
def state_store(models_root: Path) -> LifecycleStateStore:
    return LifecycleStateStore(models_root / "state.json")


@pytest.fixture()
def registry(
    fake_catalog: FakeCatalogClient,
    fake_loader: FakeLoader,
    state_store: LifecycleStateStore,
    models_root: Path,
) -> ModelRegistry:
    return ModelRegistry(
        client=fake_catalog,
        cache=InMemoryCatalogCache(),
        state=state_store,
        downloader=ModelDownloader(fake_catalog, models_root),
        loader=fake_loader,
    )
