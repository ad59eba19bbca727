"""Local download and activation records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class LocalModelRecord:
    """A model whose artifacts have been materialized on this machine."""

    id: str
    local_path: str
    version: str
    downloaded_at: datetime
    model_type: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.model_type,
            "path": self.local_path,
            "version": self.version,
            "downloaded_at": self.downloaded_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LocalModelRecord":
        return cls(
            id=str(payload["id"]),
            local_path=str(payload.get("path") or ""),
            version=str(payload.get("version") or ""),
            downloaded_at=_parse_timestamp(payload.get("downloaded_at")),
            model_type=str(payload.get("type") or ""),
        )


@dataclass
class LifecycleState:
    """Every locally materialized model plus the id of the active one.

    ``active_id`` is the only stored representation of which model is
    active; per-record views are derived from it, so at most one record can
    ever read as active.
    """

    active_id: Optional[str] = None
    records: Dict[str, LocalModelRecord] = field(default_factory=dict)

    def is_active(self, model_id: str) -> bool:
        return self.active_id is not None and self.active_id == model_id

    @property
    def active_record(self) -> Optional[LocalModelRecord]:
        if self.active_id is None:
            return None
        return self.records.get(self.active_id)

    def to_payload(self) -> dict[str, Any]:
        return {
            "active_model": self.active_id or "",
            "models": {
                model_id: dict(
                    record.to_payload(), active=self.is_active(model_id)
                )
                for model_id, record in sorted(self.records.items())
            },
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LifecycleState":
        raw_models = payload.get("models") or {}
        records: Dict[str, LocalModelRecord] = {}
        if isinstance(raw_models, Mapping):
            for model_id, raw in raw_models.items():
                if not isinstance(raw, Mapping):
                    continue
                record = LocalModelRecord.from_payload(
                    dict(raw, id=raw.get("id") or model_id)
                )
                records[record.id] = record
        active_id = payload.get("active_model") or None
        return cls(active_id=active_id, records=records)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return datetime.fromtimestamp(0, timezone.utc)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return datetime.fromtimestamp(0, timezone.utc)
