"""
Activity Fact — the unit of work that crosses the broker.

A fact is produced once an activity is stored and consumed by the
recommendation worker. It is immutable and serialized as a flat JSON object.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ActivityType(str, Enum):
    RUNNING = "RUNNING"
    WALKING = "WALKING"
    CYCLING = "CYCLING"
    SWIMMING = "SWIMMING"
    WEIGHT_TRAINING = "WEIGHT_TRAINING"
    YOGA = "YOGA"
    HIIT = "HIIT"
    CARDIO = "CARDIO"
    STRETCHING = "STRETCHING"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Any) -> "ActivityType":
        """Case-insensitive lookup; unknown kinds map to OTHER."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Invalid activity type: {value!r}")
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            return cls.OTHER

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").lower()


def _require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Activity fact field '{key}' must be a non-empty string")
    return value


def _require_non_negative_int(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Activity fact field '{key}' must be a number")
    if value < 0:
        raise ValueError(f"Activity fact field '{key}' must not be negative")
    return int(value)


def _coerce_metrics(raw: Any) -> Dict[str, float]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError("Activity fact field 'additional_metrics' must be an object")
    metrics: Dict[str, float] = {}
    for name, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Metric '{name}' must be numeric")
        metrics[str(name)] = value
    return metrics


@dataclass(frozen=True)
class ActivityFact:
    id: str
    user_id: str
    type: ActivityType
    duration: int  # minutes
    calories_burned: int
    start_time: Optional[datetime] = None
    additional_metrics: Dict[str, float] = field(default_factory=dict)

    def to_message(self) -> Dict[str, Any]:
        """JSON-serializable broker payload."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type.value,
            "duration": self.duration,
            "calories_burned": self.calories_burned,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "additional_metrics": dict(self.additional_metrics),
        }

    @classmethod
    def from_message(cls, payload: Any) -> "ActivityFact":
        """Rebuild a fact from a broker payload. Raises ValueError if malformed."""
        if not isinstance(payload, Mapping):
            raise ValueError(f"Activity fact must be an object, got {type(payload).__name__}")

        start_time = None
        raw_start = payload.get("start_time")
        if raw_start:
            if not isinstance(raw_start, str):
                raise ValueError("Activity fact field 'start_time' must be an ISO string")
            start_time = datetime.fromisoformat(raw_start.replace("Z", "+00:00"))

        return cls(
            id=_require_str(payload, "id"),
            user_id=_require_str(payload, "user_id"),
            type=ActivityType.parse(payload.get("type")),
            duration=_require_non_negative_int(payload, "duration"),
            calories_burned=_require_non_negative_int(payload, "calories_burned"),
            start_time=start_time,
            additional_metrics=_coerce_metrics(payload.get("additional_metrics")),
        )

    @classmethod
    def from_model(cls, activity: Any) -> "ActivityFact":
        """Build a fact from a stored Activity row."""
        return cls(
            id=str(activity.id),
            user_id=str(activity.user_id),
            type=ActivityType.parse(activity.type),
            duration=int(activity.duration),
            calories_burned=int(activity.calories_burned),
            start_time=activity.start_time,
            additional_metrics=dict(activity.additional_metrics or {}),
        )
