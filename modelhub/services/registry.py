"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

Registry facade: the single entry point for listing, inspecting, downloading
and activating models.

Per model id the observable lifecycle is::

    UNKNOWN -> CATALOGED -> DOWNLOADED <-> ACTIVE

Listings and metadata are read-through/write-back cached with no expiry: a
request without ``refresh`` is answered from the cache when it has rows, a
request with ``refresh`` always goes to the registry and still writes back.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol, TypeVar

from modelhub.clients.errors import InferenceLoadError
from modelhub.clients.hf_client import HFClient
from modelhub.clients.llama_client import LlamaServerClient
from modelhub.config import Settings
from modelhub.models import (CatalogEntry, ConfigDocument, GlobalStats,
                             LifecycleState, LocalModelRecord, ModelDetail,
                             ModelMetadata, ModelState, normalize_model_id)
from modelhub.net.rate_limiter import RateLimiter
from modelhub.services.downloader import ModelDownloader, ProgressCallback
from modelhub.services.enrichment import enrich
from modelhub.storage import (CacheStoreError, CatalogCache, KeyedLocks,
                              LifecycleStateStore, SQLiteCatalogCache)

_T = TypeVar("_T")

BulkProgressCallback = Callable[[str, int, int], None]


class CatalogSource(Protocol):
    def list_by_pipeline(self, pipeline: str) -> list[CatalogEntry]: ...

    def fetch_detail(self, model_id: str) -> ModelDetail: ...

    def fetch_global_stats(self) -> GlobalStats: ...

    def fetch_secondary_config(
        self, model_id: str
    ) -> Optional[ConfigDocument]: ...

    def fetch_model_card(self, model_id: str) -> Optional[str]: ...


class InferenceLoader(Protocol):
    def load_model(self, path: str) -> None: ...


class InferenceLoadFailed(RuntimeError):
    """Raised when activation succeeded but the inference server load failed.

    The lifecycle state already names ``model_id`` as active at this point.
    """

    def __init__(self, model_id: str, path: str, cause: BaseException) -> None:
        self.model_id = model_id
        self.path = path
        self.cause = cause
        super().__init__(
            f"Model {model_id} activated but failed to load from {path}: {cause}"
        )


class ModelRegistry:
    """Orchestrate catalog client, cache, downloader and lifecycle state."""

    def __init__(
        self,
        client: CatalogSource,
        cache: CatalogCache,
        state: LifecycleStateStore,
        downloader: ModelDownloader,
        *,
        loader: Optional[InferenceLoader] = None,
        fetch_model_card: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._state = state
        self._downloader = downloader
        self._loader = loader
        self._fetch_model_card = fetch_model_card
        self._logger = logger or logging.getLogger(__name__)
        self._cache_locks = KeyedLocks()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelRegistry":
        """Wire the production collaborators described by ``settings``."""

        client = HFClient(
            endpoint=settings.registry_url,
            timeout=settings.http_timeout,
            rate_limiter=RateLimiter.per_second(settings.rate_limit),
        )
        return cls(
            client=client,
            cache=SQLiteCatalogCache(settings.resolved_cache_path),
            state=LifecycleStateStore(settings.resolved_state_path),
            downloader=ModelDownloader(client, settings.models_dir),
            loader=LlamaServerClient(
                base_url=settings.inference_url,
                timeout=settings.http_timeout,
            ),
            fetch_model_card=settings.fetch_model_card,
        )

    # Catalog ---------------------------------------------------------------

    def list_models(
        self, pipeline: str, *, refresh: bool = False
    ) -> list[CatalogEntry]:
        """Return the listing for ``pipeline``, cache-first unless ``refresh``."""

        with self._cache_locks.acquire(f"list:{pipeline}"):
            if not refresh:
                cached = self._read_cache(
                    lambda: self._cache.get_list(pipeline),
                    what=f"listing {pipeline}",
                )
                if cached:
                    self._logger.debug(
                        "Serving %d cached models for %s", len(cached), pipeline
                    )
                    return cached

            entries = self._client.list_by_pipeline(pipeline)
            self._write_cache(
                lambda: self._cache.put_list(pipeline, entries),
                what=f"listing {pipeline}",
            )
            return entries

    def refresh_models(self, pipeline: str) -> list[CatalogEntry]:
        return self.list_models(pipeline, refresh=True)

    def get_metadata(
        self,
        model_id: str,
        *,
        refresh: bool = False,
        pipeline_hint: str = "",
    ) -> ModelMetadata:
        """Return enriched metadata for ``model_id``, cache-first unless ``refresh``."""

        with self._cache_locks.acquire(f"meta:{model_id}"):
            if not refresh:
                cached = self._read_cache(
                    lambda: self._cache.get_metadata(model_id),
                    what=f"metadata {model_id}",
                )
                if cached is not None:
                    return cached

            detail = self._client.fetch_detail(model_id)
            config = self._client.fetch_secondary_config(model_id)
            model_card = None
            if self._fetch_model_card:
                model_card = self._client.fetch_model_card(model_id)
            metadata = enrich(detail, config, model_card=model_card)
            self._write_cache(
                lambda: self._cache.put_metadata(pipeline_hint, metadata),
                what=f"metadata {model_id}",
            )
            return metadata

    def model_stats(self, model_id: str) -> ModelDetail:
        """Uncached revision detail straight from the registry."""
        return self._client.fetch_detail(model_id)

    def global_stats(self) -> GlobalStats:
        return self._client.fetch_global_stats()

    # Downloads -------------------------------------------------------------

    def download(
        self,
        model_id: str,
        on_progress: Optional[ProgressCallback] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> LocalModelRecord:
        """Materialize ``model_id`` locally and record it (CATALOGED -> DOWNLOADED)."""

        model_id = normalize_model_id(model_id)
        version = self._downloader.download(
            model_id, on_progress, cancel_event=cancel_event
        )
        return self._state.record_download(
            model_id,
            str(self._downloader.target_dir(model_id)),
            version,
            model_type=self._cached_model_type(model_id),
        )

    def download_all(
        self,
        pipeline: str,
        *,
        force: bool = False,
        on_progress: Optional[BulkProgressCallback] = None,
    ) -> list[LocalModelRecord]:
        """Download every model listed for ``pipeline``.

        Ids that already have a local record are skipped unless ``force``.
        """

        entries = self.list_models(pipeline)
        existing = self._state.load().records
        records: list[LocalModelRecord] = []
        for entry in entries:
            if normalize_model_id(entry.id) in existing and not force:
                self._logger.info("Skipping %s, already downloaded", entry.id)
                continue
            callback: Optional[ProgressCallback] = None
            if on_progress is not None:
                callback = _bind_model_id(on_progress, entry.id)
            records.append(self.download(entry.id, callback))
        return records

    # Activation ------------------------------------------------------------

    def activate(self, model_id: str, *, load: bool = True) -> str:
        """Make ``model_id`` active and hand its path to the inference server.

        A load failure raises :class:`InferenceLoadFailed`; the persisted
        state still names ``model_id`` as active.
        """

        model_id = normalize_model_id(model_id)
        path = self._state.activate(model_id)
        if not load or self._loader is None:
            return path
        try:
            self._loader.load_model(path)
        except InferenceLoadError as exc:
            self._logger.error(
                "Model %s is active but the inference server failed to load %s: %s",
                model_id,
                path,
                exc,
            )
            raise InferenceLoadFailed(model_id, path, exc) from exc
        return path

    def status(self) -> Optional[LocalModelRecord]:
        return self._state.active_record()

    def local_models(self) -> LifecycleState:
        return self._state.load()

    def model_state(self, model_id: str) -> ModelState:
        model_id = normalize_model_id(model_id)
        state = self._state.load()
        if state.is_active(model_id):
            return ModelState.ACTIVE
        if model_id in state.records:
            return ModelState.DOWNLOADED
        cached = self._read_cache(
            lambda: self._cache.contains(model_id), what=f"presence {model_id}"
        )
        return ModelState.CATALOGED if cached else ModelState.UNKNOWN

    # Helpers ---------------------------------------------------------------

    def _cached_model_type(self, model_id: str) -> str:
        cached = self._read_cache(
            lambda: self._cache.get_metadata(model_id),
            what=f"metadata {model_id}",
        )
        return cached.architecture_family if cached is not None else ""

    def _read_cache(
        self, operation: Callable[[], _T], *, what: str
    ) -> Optional[_T]:
        try:
            return operation()
        except CacheStoreError as exc:
            self._logger.warning("Cache read failed for %s: %s", what, exc)
            return None

    def _write_cache(self, operation: Callable[[], None], *, what: str) -> None:
        try:
            operation()
        except CacheStoreError as exc:
            self._logger.warning("Cache write failed for %s: %s", what, exc)


def _bind_model_id(
    callback: BulkProgressCallback, model_id: str
) -> ProgressCallback:
    def _progress(done: int, total: int) -> None:
        callback(model_id, done, total)

    return _progress

