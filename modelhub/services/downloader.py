"""Retrieve every artifact file of a model revision into a local directory."""

from __future__ import annotations

import contextlib
import logging
import threading
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Optional, Protocol

import requests

from modelhub.clients.errors import CatalogError
from modelhub.models import ModelDetail, normalize_model_id

ProgressCallback = Callable[[int, int], None]

CHUNK_SIZE = 1024 * 1024

_LOGGER = logging.getLogger(__name__)


class DownloadError(RuntimeError):
    """Base class for download failures."""


class ArtifactFetchFailed(DownloadError):
    """Raised when one artifact transfer fails; the whole download aborts."""

    def __init__(self, filename: str, cause: BaseException) -> None:
        self.filename = filename
        self.cause = cause
        super().__init__(f"Failed to fetch {filename}: {cause}")


class DownloadCancelled(DownloadError):
    """Raised when the caller's cancel event is set mid-download."""


class ArtifactSource(Protocol):
    def fetch_detail(self, model_id: str) -> ModelDetail: ...

    def open_artifact(self, model_id: str, filename: str) -> Any: ...


class ModelDownloader:
    """Stream artifacts to ``<models_root>/<model id>/<basename>``.

    Downloads are all-or-nothing from the caller's view: the first failing
    file raises :class:`ArtifactFetchFailed` and files already written stay
    on disk. A retry fetches every file again and overwrites them.
    """

    def __init__(
        self,
        client: ArtifactSource,
        models_root: Path,
        *,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self._client = client
        self._models_root = Path(models_root)
        self._chunk_size = chunk_size

    def target_dir(self, model_id: str) -> Path:
        """Return the directory for ``model_id`` below the models root.

        Raises ValueError for ids that are malformed or resolve elsewhere.
        """

        target = self._models_root / normalize_model_id(model_id)
        root = self._models_root.resolve()
        if not target.resolve().is_relative_to(root):
            raise ValueError(
                f"Model identifier {model_id!r} escapes models root {root}"
            )
        return target

    def download(
        self,
        model_id: str,
        on_progress: Optional[ProgressCallback] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Download all files of ``model_id`` and return its content hash.

        ``on_progress(done, total)`` fires once per completed file.
        ``cancel_event`` is checked before each file and between chunks.
        """

        model_id = normalize_model_id(model_id)
        target = self.target_dir(model_id)
        detail = self._client.fetch_detail(model_id)
        total = len(detail.files)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DownloadError(
                f"Unable to create model directory {target}: {exc}"
            ) from exc

        _LOGGER.info(
            "Downloading %s (%d files, sha=%s) into %s",
            model_id,
            total,
            detail.content_hash,
            target,
        )
        for index, artifact in enumerate(detail.files, start=1):
            self._check_cancelled(cancel_event, model_id)
            basename = PurePosixPath(artifact.name).name
            if basename in ("", ".", ".."):
                raise DownloadError(
                    f"Refusing artifact with unsafe name {artifact.name!r}"
                )
            destination = target / basename
            self._fetch_one(model_id, artifact.name, destination, cancel_event)
            _LOGGER.debug(
                "Fetched %s (%d/%d) for %s", artifact.name, index, total, model_id
            )
            if on_progress is not None:
                on_progress(index, total)

        _LOGGER.info("Download of %s complete", model_id)
        return detail.content_hash

    def _fetch_one(
        self,
        model_id: str,
        filename: str,
        destination: Path,
        cancel_event: Optional[threading.Event],
    ) -> None:
        try:
            response = self._client.open_artifact(model_id, filename)
            with contextlib.closing(response), destination.open("wb") as handle:
                for chunk in response.iter_content(chunk_size=self._chunk_size):
                    self._check_cancelled(cancel_event, model_id)
                    if chunk:
                        handle.write(chunk)
        except DownloadCancelled:
            raise
        except (CatalogError, requests.RequestException, OSError) as exc:
            _LOGGER.warning(
                "Artifact %s of %s failed: %s", filename, model_id, exc
            )
            raise ArtifactFetchFailed(filename, exc) from exc

    @staticmethod
    def _check_cancelled(
        cancel_event: Optional[threading.Event], model_id: str
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            _LOGGER.info("Download of %s cancelled", model_id)
            raise DownloadCancelled(f"Download of {model_id} cancelled")
