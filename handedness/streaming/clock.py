from __future__ import annotations

import numpy as np

from handedness.streaming.protocol import SensorEvent, SensorSource

CHANNELS = ("ax", "ay", "az", "gx", "gy", "gz")


class SampleClock:
    """Rate-gate irregular per-sensor events into a fixed-rate 6-channel stream.

    Each event overwrites the last-known reading of its source. A sample is
    committed on the first event ever, and afterwards whenever at least one
    sampling interval has elapsed since the previous commit, whichever source
    delivered the event. Sources that have not fired carry their last value
    forward (zeros until first observed).
    """

    def __init__(self, *, rate_hz: float = 60.0):
        if rate_hz <= 0:
            raise ValueError("rate_hz must be > 0")
        self.rate_hz = float(rate_hz)
        self.sampling_interval_ns = int(round(1e9 / self.rate_hz))

        self._last = np.zeros(len(CHANNELS), dtype=np.float32)
        self._last_commit_ns: int | None = None
        self.commits = 0

    @property
    def last_commit_ns(self) -> int | None:
        return self._last_commit_ns

    def observe(self, event: SensorEvent) -> np.ndarray | None:
        """Record one event; return the committed sample, or None if rate-gated."""

        if not isinstance(event.source, SensorSource):
            return None

        off = event.source.offset
        self._last[off : off + 3] = event.values

        now = int(event.t_ns)
        if self._last_commit_ns is not None and (now - self._last_commit_ns) < self.sampling_interval_ns:
            return None

        self._last_commit_ns = now
        self.commits += 1
        return self._last.copy()

    def reset(self) -> None:
        self._last.fill(0.0)
        self._last_commit_ns = None
        self.commits = 0
