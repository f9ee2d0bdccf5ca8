#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import math
import random
import sys
import time


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Generate fake accelerometer/gyroscope JSON events (for local smoke tests).")
    p.add_argument("--seconds", type=float, default=5.0)
    p.add_argument("--accel-hz", type=float, default=100.0)
    p.add_argument("--gyro-hz", type=float, default=200.0)
    p.add_argument("--jitter", type=float, default=0.2, help="Relative jitter of each sensor's event period.")
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--realtime", action="store_true", help="Sleep between events to simulate real-time streaming.")
    return p.parse_args()


def _event_times(rate_hz: float, seconds: float, jitter: float, rng: random.Random) -> list[float]:
    period = 1.0 / rate_hz
    times: list[float] = []
    t = 0.0
    while t < seconds:
        times.append(t)
        t += period * (1.0 + rng.uniform(-jitter, jitter))
    return times


def main() -> int:
    args = _parse_args()
    rng = random.Random(args.seed)

    if args.accel_hz <= 0 or args.gyro_hz <= 0:
        raise SystemExit("--accel-hz and --gyro-hz must be > 0")

    events: list[tuple[float, str]] = [(t, "acc") for t in _event_times(args.accel_hz, args.seconds, args.jitter, rng)]
    events += [(t, "gyro") for t in _event_times(args.gyro_hz, args.seconds, args.jitter, rng)]
    events.sort()

    t0_ns = time.monotonic_ns()
    start = time.monotonic()
    for t, sensor in events:
        if sensor == "acc":
            # Gravity on z + wrist sway + noise.
            x = 0.8 * math.sin(2.0 * math.pi * 1.2 * t) + rng.uniform(-0.05, 0.05)
            y = 0.6 * math.sin(2.0 * math.pi * 0.8 * t + 0.1) + rng.uniform(-0.05, 0.05)
            z = 9.81 + 0.3 * math.sin(2.0 * math.pi * 1.0 * t + 0.2) + rng.uniform(-0.05, 0.05)
        else:
            x = 0.10 * math.sin(2.0 * math.pi * 0.7 * t) + rng.uniform(-0.02, 0.02)
            y = 0.12 * math.sin(2.0 * math.pi * 1.4 * t + 0.2) + rng.uniform(-0.02, 0.02)
            z = 0.05 * math.sin(2.0 * math.pi * 0.9 * t + 0.3) + rng.uniform(-0.02, 0.02)

        if args.realtime:
            delay = t - (time.monotonic() - start)
            if delay > 0:
                time.sleep(delay)

        msg = {"sensor": sensor, "t_ns": t0_ns + int(round(t * 1e9)), "x": x, "y": y, "z": z}
        sys.stdout.write(json.dumps(msg) + "\n")
        sys.stdout.flush()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
