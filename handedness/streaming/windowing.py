from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class ImuWindow:
    x: np.ndarray  # (window_size, channel_count) float32, oldest first
    t_end_ns: int | None


class RingBuffer:
    """Fixed-capacity circular store of samples."""

    def __init__(self, *, capacity: int, channel_count: int):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        if channel_count <= 0:
            raise ValueError("channel_count must be > 0")
        self.capacity = int(capacity)
        self.channel_count = int(channel_count)

        self._slots = np.zeros((self.capacity, self.channel_count), dtype=np.float32)
        self.write_pos = 0
        self.live_count = 0

    @property
    def is_full(self) -> bool:
        return self.live_count == self.capacity

    def write(self, sample: np.ndarray) -> None:
        self._slots[self.write_pos] = sample
        self.write_pos = (self.write_pos + 1) % self.capacity
        if self.live_count < self.capacity:
            self.live_count += 1

    def snapshot(self) -> np.ndarray:
        # write_pos is the next slot to be overwritten, i.e. the oldest live one when full.
        if not self.is_full:
            return self._slots[: self.live_count].copy()
        return np.roll(self._slots, -self.write_pos, axis=0)

    def reset(self) -> None:
        self._slots.fill(0.0)
        self.write_pos = 0
        self.live_count = 0


class WindowedClassifier:
    """Sliding window over committed samples, emitting one window per stride once full."""

    def __init__(self, *, window_size: int = 120, channel_count: int = 6, stride_size: int = 60):
        if window_size <= 0:
            raise ValueError("window_size must be > 0")
        if stride_size <= 0:
            raise ValueError("stride_size must be > 0")
        if stride_size > window_size:
            raise ValueError("stride_size must be <= window_size")

        self.window_size = int(window_size)
        self.channel_count = int(channel_count)
        self.stride_size = int(stride_size)

        self.ring = RingBuffer(capacity=self.window_size, channel_count=self.channel_count)
        self.samples_since_last_trigger = 0
        self.windows_emitted = 0

    def ingest(self, sample: np.ndarray, *, t_ns: int | None = None) -> ImuWindow | None:
        vec = np.asarray(sample, dtype=np.float32)
        if vec.shape != (self.channel_count,):
            raise ValueError(f"Expected sample shape ({self.channel_count},), got {vec.shape}")

        self.ring.write(vec)
        self.samples_since_last_trigger += 1

        if not self.ring.is_full:
            return None
        if self.samples_since_last_trigger < self.stride_size:
            return None

        self.samples_since_last_trigger = 0
        self.windows_emitted += 1
        return ImuWindow(x=self.ring.snapshot(), t_end_ns=t_ns)

    def reset(self) -> None:
        self.ring.reset()
        self.samples_since_last_trigger = 0
        self.windows_emitted = 0
