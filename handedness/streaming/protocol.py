from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class SensorSource(Enum):
    """Channel groups of a committed sample, in channel order."""

    ACCELEROMETER = 0
    GYROSCOPE = 1

    @property
    def offset(self) -> int:
        return self.value * 3


_SOURCE_ALIASES: dict[str, SensorSource] = {
    "acc": SensorSource.ACCELEROMETER,
    "accel": SensorSource.ACCELEROMETER,
    "accelerometer": SensorSource.ACCELEROMETER,
    "gyro": SensorSource.GYROSCOPE,
    "gyroscope": SensorSource.GYROSCOPE,
}


@dataclass(frozen=True)
class SensorEvent:
    source: SensorSource
    values: tuple[float, float, float]
    t_ns: int


def _get_num(d: dict[str, Any], key: str) -> float | None:
    if key not in d:
        return None
    try:
        return float(d[key])
    except (TypeError, ValueError):
        return None


def _timestamp_ns(d: dict[str, Any]) -> int | None:
    if "t_ns" in d:
        try:
            return int(d["t_ns"])
        except (TypeError, ValueError):
            return None
    # Seconds (monotonic or epoch) are accepted too.
    t = _get_num(d, "t")
    if t is None:
        return None
    return int(round(t * 1e9))


def _parse_one(event_dict: dict[str, Any]) -> SensorEvent:
    if not isinstance(event_dict, dict):
        raise ValueError(f"Expected an event object, got {type(event_dict).__name__}")

    name = str(event_dict.get("sensor") or event_dict.get("source") or "").strip().lower()
    source = _SOURCE_ALIASES.get(name)
    if source is None:
        raise ValueError(f"Unknown sensor {name!r}. Expected one of {sorted(_SOURCE_ALIASES)}.")

    t_ns = _timestamp_ns(event_dict)
    if t_ns is None:
        raise ValueError("Missing/invalid timestamp. Expected 't_ns' (int nanoseconds) or 't' (seconds).")

    raw = event_dict.get("values")
    if isinstance(raw, list):
        if len(raw) != 3:
            raise ValueError(f"Expected 3 values, got {len(raw)}")
        try:
            values = tuple(float(v) for v in raw)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid values: {raw!r}") from e
    else:
        xyz = [_get_num(event_dict, k) for k in ("x", "y", "z")]
        missing = [k for k, v in zip(("x", "y", "z"), xyz) if v is None]
        if missing:
            raise ValueError(f"Missing/invalid axis fields: {missing}. Expected keys x/y/z or 'values'.")
        values = tuple(float(v) for v in xyz)

    return SensorEvent(source=source, values=values, t_ns=t_ns)


def parse_payload(payload: bytes | str) -> list[SensorEvent]:
    """Parse one JSON payload into sensor events.

    Supported forms:
    1) Single event: {"sensor": "acc", "t_ns": ..., "x": ..., "y": ..., "z": ...}
    2) Batch dict: {"events": [ {...}, {...} ]}
    3) Raw list: [ {...}, {...} ]
    """

    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
    text = text.strip()
    if not text:
        return []

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON payload: {e}") from e

    if isinstance(data, list):
        return [_parse_one(d) for d in data]

    if isinstance(data, dict) and isinstance(data.get("events"), list):
        return [_parse_one(d) for d in data["events"]]

    if isinstance(data, dict):
        return [_parse_one(data)]

    raise ValueError("Invalid JSON payload. Expected a dict or list.")
