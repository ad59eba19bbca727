"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

Keyed mutual exclusion for read-modify-write sequences.

Two layers are combined:
  (1) an in-process re-entrant lock per key, so request threads serialize
  (2) an advisory ``fcntl`` lock on a sidecar ``.lock`` file, so separate
      processes sharing the same state file (CLI next to the server)
      serialize too

Keys are arbitrary strings; the lifecycle store uses its state file path and
the registry uses ``list:<pipeline>`` / ``meta:<model id>`` for the cache.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from pathlib import Path
from typing import Iterator, Optional

from .errors import LockTimeout

try:
    import fcntl
except ImportError:  # pragma: no cover - non-POSIX platforms
    fcntl = None  # type: ignore[assignment]

_LOGGER = logging.getLogger(__name__)


class KeyedLocks:
    """Hand out one re-entrant lock per key.

    A key's lock is dropped once no thread holds or waits for it, so the
    table only grows with the number of keys in use at the same time.
    """

    def __init__(self) -> None:
        self._gate = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        with self._gate:
            return len(self._locks)

    def _checkout(self, key: str) -> threading.RLock:
        with self._gate:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._gate:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                del self._users[key]
                del self._locks[key]

    @contextlib.contextmanager
    def acquire(
        self, key: str, *, timeout: Optional[float] = None
    ) -> Iterator[None]:
        """
        acquire: Hold the lock for ``key`` for the duration of the block.
        :param key: lock name
        :param timeout: seconds to wait before raising LockTimeout
        """

        lock = self._checkout(key)
        try:
            acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
            if not acquired:
                raise LockTimeout(f"Timed out acquiring lock for {key}")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)


_PROCESS_LOCKS = KeyedLocks()


@contextlib.contextmanager
def _file_lock(path: Path, *, timeout: float) -> Iterator[None]:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = path.open("a+", encoding="utf-8")
    try:
        if fcntl is None:
            yield
            return
        deadline = time.monotonic() + max(0.0, timeout)
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise LockTimeout(
                        f"Timed out acquiring file lock {path}"
                    ) from None
                time.sleep(0.01)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    finally:
        handle.close()


@contextlib.contextmanager
def exclusive_lock(
    path: Path, *, timeout: float = 30.0
) -> Iterator[None]:
    """Serialize work on ``path`` across threads and processes."""

    key = str(Path(path).resolve(strict=False))
    with _PROCESS_LOCKS.acquire(key, timeout=timeout):
        lock_path = Path(key + ".lock")
        with _file_lock(lock_path, timeout=timeout):
            _LOGGER.debug("Acquired exclusive lock for %s", key)
            yield
