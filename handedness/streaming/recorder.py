from __future__ import annotations

import csv
import logging
import time
from pathlib import Path
from typing import IO

import numpy as np

from handedness.streaming.clock import CHANNELS

logger = logging.getLogger(__name__)

HEADER = ["timestamp", "handedness", *CHANNELS]


class SampleRecorder:
    """Write committed samples to CSV, rotating files once they exceed max_bytes."""

    def __init__(self, out_dir: str | Path, *, handedness: str = "BOTH", max_bytes: int = 50 * 1024 * 1024):
        if max_bytes <= 0:
            raise ValueError("max_bytes must be > 0")
        self.out_dir = Path(out_dir)
        self.handedness = str(handedness).upper()
        self.max_bytes = int(max_bytes)

        self.files: list[Path] = []
        self._fh: IO[str] | None = None
        self._writer = None

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    @property
    def current_path(self) -> Path | None:
        return self.files[-1] if self._fh is not None else None

    def _new_path(self) -> Path:
        stamp = time.strftime("%Y%m%d_%H%M%S")
        path = self.out_dir / f"IMU_{self.handedness}_{stamp}.csv"
        n = 1
        while path.exists():
            path = self.out_dir / f"IMU_{self.handedness}_{stamp}_{n}.csv"
            n += 1
        return path

    def _open_file(self) -> None:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        path = self._new_path()
        self._fh = path.open("w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._fh)
        self._writer.writerow(HEADER)
        self._fh.flush()
        self.files.append(path)
        logger.info("Recording samples to %s", path)

    def open(self) -> None:
        if self._fh is None:
            self._open_file()

    def write(self, t_ns: int | None, sample: np.ndarray) -> None:
        if self._fh is None or self._writer is None:
            return
        try:
            self._writer.writerow(["" if t_ns is None else int(t_ns), self.handedness, *(float(v) for v in sample)])
            self._fh.flush()
            if self._fh.tell() > self.max_bytes:
                self._rotate()
        except (OSError, ValueError):
            logger.exception("Error writing IMU sample")

    def _rotate(self) -> None:
        self.close()
        try:
            self._open_file()
        except OSError:
            # Recording stays off until the next open().
            logger.exception("Could not rotate recording after %s", self.files[-1])

    def close(self) -> None:
        if self._fh is None:
            return
        try:
            self._fh.close()
        except OSError as e:
            logger.warning("Error closing %s: %s", self.files[-1], e)
        self._fh = None
        self._writer = None
