"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

SQLite-backed catalog cache.

Listings are keyed by ``(pipeline, id)`` and enriched metadata by ``id``.
Writes are upserts: a row missing from a newer batch is never deleted, so a
partial remote listing cannot drop known-good rows. Array fields (tags,
files, backends) are stored as JSON text.
"""

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from modelhub.models import (GENERIC_BACKEND, ArtifactFile, CatalogEntry,
                             ModelMetadata)

from .base import CatalogCache
from .errors import CacheStoreError

_LOGGER = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS catalog_listing (
        pipeline TEXT NOT NULL,
        id TEXT NOT NULL,
        last_modified TEXT NOT NULL DEFAULT '',
        downloads INTEGER NOT NULL DEFAULT 0,
        tags TEXT NOT NULL DEFAULT '[]',
        position INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (pipeline, id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS model_metadata (
        id TEXT PRIMARY KEY,
        pipeline TEXT NOT NULL DEFAULT '',
        last_modified TEXT NOT NULL DEFAULT '',
        downloads INTEGER NOT NULL DEFAULT 0,
        tags TEXT NOT NULL DEFAULT '[]',
        sha TEXT NOT NULL DEFAULT '',
        files TEXT NOT NULL DEFAULT '[]',
        llama_compatible INTEGER NOT NULL DEFAULT 0,
        model_type TEXT,
        hidden_size INTEGER,
        n_layer INTEGER,
        num_attention_heads INTEGER,
        quantized INTEGER NOT NULL DEFAULT 0,
        gguf INTEGER NOT NULL DEFAULT 0,
        safetensors INTEGER NOT NULL DEFAULT 0,
        compatible_backends TEXT,
        license TEXT,
        model_card TEXT,
        download_size INTEGER NOT NULL DEFAULT 0
    )
    """,
)


class SQLiteCatalogCache(CatalogCache):
    """Catalog cache persisted in a single SQLite database file."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._schema_lock = threading.Lock()
        self._schema_ready = False

    @property
    def path(self) -> Path:
        return self._db_path

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        self._ensure_schema()
        try:
            conn = sqlite3.connect(self._db_path, timeout=30.0)
        except sqlite3.Error as exc:
            raise CacheStoreError(
                f"Unable to open catalog cache {self._db_path}: {exc}"
            ) from exc
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise CacheStoreError(f"Catalog cache operation failed: {exc}") from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with self._schema_lock:
            if self._schema_ready:
                return
            try:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(self._db_path, timeout=30.0)
                try:
                    with conn:
                        for statement in _SCHEMA:
                            conn.execute(statement)
                finally:
                    conn.close()
            except (OSError, sqlite3.Error) as exc:
                raise CacheStoreError(
                    f"Unable to initialise catalog cache {self._db_path}: {exc}"
                ) from exc
            _LOGGER.debug("Catalog cache schema ready at %s", self._db_path)
            self._schema_ready = True

    def get_list(self, pipeline: str) -> Optional[list[CatalogEntry]]:
        _LOGGER.debug("get_list pipeline=%s", pipeline)
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, last_modified, downloads, tags FROM catalog_listing "
                "WHERE pipeline = ? ORDER BY position, id",
                (pipeline,),
            ).fetchall()
        if not rows:
            return None
        entries = [
            CatalogEntry(
                id=row["id"],
                last_modified=row["last_modified"],
                downloads=int(row["downloads"]),
                tags=tuple(_load_json_list(row["tags"])),
            )
            for row in rows
        ]
        _LOGGER.debug("get_list pipeline=%s count=%d", pipeline, len(entries))
        return entries

    def put_list(self, pipeline: str, entries: Sequence[CatalogEntry]) -> None:
        _LOGGER.info("put_list pipeline=%s count=%d", pipeline, len(entries))
        with self._connect() as conn:
            (start,) = conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM catalog_listing "
                "WHERE pipeline = ?",
                (pipeline,),
            ).fetchone()
            conn.executemany(
                "INSERT OR REPLACE INTO catalog_listing "
                "(pipeline, id, last_modified, downloads, tags, position) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (
                        pipeline,
                        entry.id,
                        entry.last_modified,
                        entry.downloads,
                        json.dumps(list(entry.tags)),
                        start + offset,
                    )
                    for offset, entry in enumerate(entries)
                ],
            )

    def get_metadata(self, model_id: str) -> Optional[ModelMetadata]:
        _LOGGER.debug("get_metadata id=%s", model_id)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM model_metadata WHERE id = ?", (model_id,)
            ).fetchone()
        if row is None:
            return None
        return _row_to_metadata(row)

    def put_metadata(self, pipeline_hint: str, metadata: ModelMetadata) -> None:
        _LOGGER.info(
            "put_metadata id=%s pipeline=%s", metadata.id, pipeline_hint
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO model_metadata ("
                "id, pipeline, last_modified, downloads, tags, sha, files, "
                "llama_compatible, model_type, hidden_size, n_layer, "
                "num_attention_heads, quantized, gguf, safetensors, "
                "compatible_backends, license, model_card, download_size"
                ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    metadata.id,
                    pipeline_hint,
                    metadata.last_modified,
                    metadata.downloads,
                    json.dumps(list(metadata.tags)),
                    metadata.content_hash,
                    json.dumps([f.to_payload() for f in metadata.files]),
                    int(metadata.llama_compatible),
                    metadata.architecture_family or None,
                    metadata.hidden_size,
                    metadata.layer_count,
                    metadata.attention_heads,
                    int(metadata.is_quantized),
                    int(metadata.has_gguf),
                    int(metadata.has_safetensors),
                    json.dumps(list(metadata.compatible_backends)),
                    metadata.license,
                    metadata.model_card,
                    metadata.total_download_bytes,
                ),
            )

    def contains(self, model_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM model_metadata WHERE id = ? "
                "UNION ALL SELECT 1 FROM catalog_listing WHERE id = ? LIMIT 1",
                (model_id, model_id),
            ).fetchone()
        return row is not None


def _load_json_list(raw: Optional[str]) -> list[Any]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        _LOGGER.warning("Discarding malformed JSON column value %r", raw)
        return []
    return value if isinstance(value, list) else []


def _row_to_metadata(row: sqlite3.Row) -> ModelMetadata:
    files = tuple(
        ArtifactFile.from_payload(item)
        if isinstance(item, dict)
        else ArtifactFile(name=str(item))
        for item in _load_json_list(row["files"])
    )
    backends = tuple(str(b) for b in _load_json_list(row["compatible_backends"]))
    return ModelMetadata(
        id=row["id"],
        last_modified=row["last_modified"],
        downloads=int(row["downloads"]),
        tags=tuple(str(tag) for tag in _load_json_list(row["tags"])),
        content_hash=row["sha"],
        files=files,
        license=row["license"],
        is_quantized=bool(row["quantized"]),
        has_gguf=bool(row["gguf"]),
        has_safetensors=bool(row["safetensors"]),
        compatible_backends=backends or (GENERIC_BACKEND,),
        llama_compatible=bool(row["llama_compatible"]),
        architecture_family=row["model_type"] or "",
        hidden_size=row["hidden_size"],
        layer_count=row["n_layer"],
        attention_heads=row["num_attention_heads"],
        model_card=row["model_card"],
        total_download_bytes=int(row["download_size"]),
    )
