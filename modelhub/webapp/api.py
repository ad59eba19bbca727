"""REST API blueprint exposing catalog, download and activation endpoints."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Iterator

from flask import Blueprint, Response, jsonify, request

from modelhub.clients.errors import (RegistryError, RegistryUnavailable,
                                     StatsUnavailable)
from modelhub.models import ProgressEvent
from modelhub.services.registry import InferenceLoadFailed, ModelRegistry
from modelhub.storage.errors import NotDownloaded

from . import get_registry

api_bp = Blueprint("api", __name__)

_LOGGER = logging.getLogger(__name__)


def _json_error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def _as_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "t", "yes", "on"}


@api_bp.errorhandler(RegistryError)
def _registry_error(exc: RegistryError):
    _LOGGER.info("Registry error surfaced to caller: %s", exc)
    return jsonify({"error": exc.body, "status": exc.status}), 502


@api_bp.errorhandler(RegistryUnavailable)
@api_bp.errorhandler(StatsUnavailable)
def _registry_unavailable(exc: Exception):
    _LOGGER.warning("Registry unavailable: %s", exc)
    return _json_error(str(exc), 503)


@api_bp.errorhandler(NotDownloaded)
def _not_downloaded(exc: NotDownloaded):
    return _json_error(str(exc), 400)


@api_bp.errorhandler(InferenceLoadFailed)
def _inference_failed(exc: InferenceLoadFailed):
    return _json_error(str(exc), 500)


@api_bp.errorhandler(ValueError)
def _bad_input(exc: ValueError):
    return _json_error(str(exc), 400)


@api_bp.get("/health")
def healthcheck():
    """Simple readiness probe used by tests or deployment."""
    return jsonify({"status": "ok"}), 200


@api_bp.get("/models")
def list_models():
    """List catalog entries for ``?pipeline=``; ``?refresh=1`` bypasses the cache."""
    pipeline = (request.args.get("pipeline") or "").strip()
    if not pipeline:
        return _json_error("pipeline required", 400)
    refresh = _as_bool(request.args.get("refresh"))
    entries = get_registry().list_models(pipeline, refresh=refresh)
    _LOGGER.info("list_models pipeline=%s count=%d", pipeline, len(entries))
    return jsonify([entry.to_payload() for entry in entries]), 200


@api_bp.post("/models/refresh")
def refresh_models():
    """Re-fetch the listing for ``?pipeline=`` and update the cache."""
    pipeline = (request.args.get("pipeline") or "").strip()
    if not pipeline:
        return _json_error("pipeline required", 400)
    entries = get_registry().refresh_models(pipeline)
    return jsonify([entry.to_payload() for entry in entries]), 200


@api_bp.get("/models/stats/global")
def global_stats():
    stats = get_registry().global_stats()
    return jsonify(stats.to_payload()), 200


@api_bp.get("/models/active")
def active_model():
    """Describe the currently active local model, if any."""
    record = get_registry().status()
    if record is None:
        return jsonify({"active": None}), 200
    return jsonify({"active": record.to_payload()}), 200


@api_bp.get("/models/<path:model_id>/stats")
def model_stats(model_id: str):
    detail = get_registry().model_stats(model_id)
    return jsonify(detail.to_payload()), 200


@api_bp.post("/models/<path:model_id>/enable")
def enable_model(model_id: str):
    """Activate a downloaded model and ask the inference server to load it."""
    get_registry().activate(model_id)
    return "", 204


@api_bp.get("/models/<path:model_id>/download")
def download_model(model_id: str) -> Response:
    """Download a model, streaming per-file progress as server-sent events."""

    registry = get_registry()
    events: "queue.Queue[tuple[str, Any]]" = queue.Queue()
    worker = threading.Thread(
        target=_run_download,
        args=(registry, model_id, events),
        name=f"download-{model_id}",
        daemon=True,
    )
    worker.start()
    return Response(
        _stream_events(events),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@api_bp.get("/models/<path:model_id>")
def model_metadata(model_id: str):
    """Enriched metadata for one model; ``?refresh=1`` bypasses the cache."""
    refresh = _as_bool(request.args.get("refresh"))
    metadata = get_registry().get_metadata(model_id, refresh=refresh)
    return jsonify(metadata.to_payload()), 200


def _run_download(
    registry: ModelRegistry,
    model_id: str,
    events: "queue.Queue[tuple[str, Any]]",
) -> None:
    def _on_progress(done: int, total: int) -> None:
        events.put(("progress", ProgressEvent(done=done, total=total)))

    try:
        registry.download(model_id, _on_progress)
    except Exception as exc:  # noqa: BLE001 - relayed to the event stream
        _LOGGER.exception("Download of %s failed", model_id)
        events.put(("error", str(exc)))
    else:
        events.put(("done", "ok"))


def _stream_events(events: "queue.Queue[tuple[str, Any]]") -> Iterator[str]:
    while True:
        kind, payload = events.get()
        if kind == "progress":
            yield f"data: {payload.percent}\n\n"
            continue
        message = " ".join(str(payload).splitlines())
        yield f"event: {kind}\ndata: {message}\n\n"
        return
