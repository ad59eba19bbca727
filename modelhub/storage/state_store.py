"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

Durable record of locally downloaded models and the active selection.

The state is one JSON document rewritten wholesale on every mutation: it is
serialized to a temporary file next to the target and moved into place with
``os.replace``, so readers see either the old or the new document, never a
partial one. Every load-mutate-save sequence runs under
:func:`~modelhub.storage.locking.exclusive_lock` keyed by the state path.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional, TypeVar

from modelhub.models import LifecycleState, LocalModelRecord, utcnow

from .errors import NotDownloaded, StateStoreError
from .locking import exclusive_lock

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


class LifecycleStateStore:
    """Sole reader and writer of the lifecycle state file."""

    def __init__(self, path: Path, *, lock_timeout: float = 30.0) -> None:
        self._path = Path(path)
        self._lock_timeout = lock_timeout

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> LifecycleState:
        """Return the persisted state; a missing file is an empty state."""
        with exclusive_lock(self._path, timeout=self._lock_timeout):
            return self._read()

    def save(self, state: LifecycleState) -> None:
        """Replace the persisted state with ``state`` in a single write.

        Raises StateStoreError, without writing, when ``state.active_id``
        names a model that has no local record.
        """
        active_id = state.active_id
        if active_id is not None and active_id not in state.records:
            raise StateStoreError(
                f"Active model {active_id} has no local record"
            )
        with exclusive_lock(self._path, timeout=self._lock_timeout):
            self._write(state)

    def record_download(
        self,
        model_id: str,
        local_path: str,
        version: str,
        *,
        model_type: str = "",
    ) -> LocalModelRecord:
        """Insert or overwrite the local record for ``model_id``."""

        record = LocalModelRecord(
            id=model_id,
            local_path=local_path,
            version=version,
            downloaded_at=utcnow(),
            model_type=model_type,
        )

        def _mutate(state: LifecycleState) -> LocalModelRecord:
            state.records[model_id] = record
            return record

        self._update(_mutate)
        _LOGGER.info(
            "Recorded download id=%s version=%s path=%s",
            model_id,
            version,
            local_path,
        )
        return record

    def activate(self, model_id: str) -> str:
        """Make ``model_id`` the single active model and return its path.

        Raises NotDownloaded (leaving the state untouched) when the id has no
        local record.
        """

        def _mutate(state: LifecycleState) -> str:
            record = state.records.get(model_id)
            if record is None:
                raise NotDownloaded(model_id)
            state.active_id = model_id
            return record.local_path

        path = self._update(_mutate)
        _LOGGER.info("Activated model id=%s path=%s", model_id, path)
        return path

    def active_record(self) -> Optional[LocalModelRecord]:
        return self.load().active_record

    def _update(self, mutate: Callable[[LifecycleState], _T]) -> _T:
        with exclusive_lock(self._path, timeout=self._lock_timeout):
            state = self._read()
            result = mutate(state)
            self._write(state)
            return result

    def _read(self) -> LifecycleState:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return LifecycleState()
        except OSError as exc:
            raise StateStoreError(
                f"Unable to read state file {self._path}: {exc}"
            ) from exc

        try:
            payload = json.loads(raw) if raw.strip() else {}
        except ValueError as exc:
            raise StateStoreError(
                f"State file {self._path} is not valid JSON: {exc}"
            ) from exc
        if not isinstance(payload, dict):
            raise StateStoreError(f"State file {self._path} is not an object")

        state = LifecycleState.from_payload(payload)
        if state.active_id and state.active_id not in state.records:
            _LOGGER.warning(
                "Active model %s has no local record; clearing selection",
                state.active_id,
            )
            state.active_id = None
        return state

    def _write(self, state: LifecycleState) -> None:
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(state.to_payload(), handle, indent=2)
                    handle.write("\n")
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self._path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise StateStoreError(
                f"Unable to write state file {self._path}: {exc}"
            ) from exc
