from __future__ import annotations

"""Helpers for loading environment configuration."""

import logging
import os
from pathlib import Path
from typing import Optional, Tuple, Union

_ENV_LOADED = False

_LOGGER = logging.getLogger(__name__)


def load_dotenv(dotenv_path: Union[str, Path] = ".env") -> None:
    """Load environment variables from a simple ``.env`` file if present."""
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    path = Path(dotenv_path)
    if path.exists():
        _LOGGER.debug("Loading environment overrides from %s", path)
        for line in path.read_text().splitlines():
            parsed = _parse_line(line)
            if parsed:
                key, value = parsed
                os.environ.setdefault(key, value)

    _ENV_LOADED = True


def _parse_line(line: str) -> Optional[Tuple[str, str]]:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    if "=" not in stripped:
        return None

    key, value = stripped.split("=", 1)
    return (key.strip(), value.strip())


def _truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    lowered = value.strip().lower()
    return lowered in {"1", "true", "yes", "on"}


def read_flag(name: str, default: bool) -> bool:
    """Return the boolean value of ``name``, or ``default`` when unset."""

    load_dotenv()
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return _truthy(value)


def read_int(name: str, default: int) -> int:
    """Return the integer value of ``name``; malformed values fall back."""

    load_dotenv()
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        _LOGGER.warning(
            "Ignoring non-integer value %r for %s; using %d", raw, name, default
        )
        return default


def read_str(name: str, default: str) -> str:
    load_dotenv()
    value = os.environ.get(name, "").strip()
    return value or default
