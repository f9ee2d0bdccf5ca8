#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from handedness.streaming.infer import HandednessClassifier, ModelLoadError
from handedness.streaming.labels import DEFAULT_LABELS, LabelResolutionError
from handedness.streaming.pipeline import HandednessPipeline, HandednessResult, PipelineConfig
from handedness.streaming.protocol import parse_payload
from handedness.streaming.recorder import SampleRecorder

logger = logging.getLogger("handedness.stream")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Read raw accelerometer/gyroscope events (JSON lines), resample to a fixed rate, and classify handedness."
    )
    parser.add_argument("--input", default=None, help="JSON-lines event file. Default: stdin.")

    parser.add_argument("--sample-rate-hz", type=float, default=60.0)
    parser.add_argument("--window-size", type=int, default=120, help="Samples per window.")
    parser.add_argument("--stride", type=int, default=60, help="New samples between classifications.")
    parser.add_argument(
        "--drop-when-busy",
        action="store_true",
        help="Drop a window instead of queueing it while the previous inference is still running.",
    )
    parser.add_argument(
        "--max-session-seconds",
        type=float,
        default=None,
        help="Stop the session once this much sensor time has elapsed (e.g. 600 for 10 minutes).",
    )

    parser.add_argument("--model-path", default=None, help="Model artifact (.joblib, .pt or .ts).")
    parser.add_argument("--metadata-path", default=None, help="metadata.json with label_classes. Default: next to the model.")
    parser.add_argument("--strict-labels", action="store_true", help="Fail instead of falling back to BOTH/LEFT/RIGHT.")
    parser.add_argument("--device", default=None, help="Torch device override (e.g. cpu, cuda).")

    parser.add_argument("--record-dir", default=None, help="Optional directory for raw sample CSV files.")
    parser.add_argument("--handedness", default="BOTH", help="Handedness tag written to recorded samples.")
    parser.add_argument("--max-file-mb", type=float, default=50.0, help="Rotate recordings beyond this size.")

    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--quiet", action="store_true", help="Do not print results.")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = PipelineConfig(
        sample_rate_hz=args.sample_rate_hz,
        window_size=args.window_size,
        stride_size=args.stride,
        drop_when_busy=args.drop_when_busy,
        max_session_seconds=args.max_session_seconds,
    )

    classifier: HandednessClassifier | None = None
    if args.model_path:
        try:
            classifier = HandednessClassifier.load(
                args.model_path,
                args.metadata_path,
                fallback_labels=None if args.strict_labels else DEFAULT_LABELS,
                window_size=config.window_size,
                channel_count=config.channel_count,
                device=args.device,
            )
        except (ModelLoadError, LabelResolutionError) as e:
            raise SystemExit(str(e))

    recorder = None
    if args.record_dir:
        recorder = SampleRecorder(
            args.record_dir,
            handedness=args.handedness,
            max_bytes=int(args.max_file_mb * 1024 * 1024),
        )

    def _emit(result: HandednessResult) -> None:
        if args.quiet:
            return
        print(
            json.dumps(
                {
                    "seq": result.seq,
                    "label": result.label,
                    "confidences": list(result.confidences),
                    "t_end_ns": result.t_end_ns,
                }
            ),
            flush=True,
        )

    pipeline = HandednessPipeline(classifier, config=config, sink=_emit, recorder=recorder)

    if classifier is None:
        logger.warning("No model given; collecting samples only")
    else:
        logger.info("Labels: %s (%s)", list(classifier.labels.labels), classifier.labels.origin)
    logger.info(
        "Rate: %.1f Hz | Window: %d samples | Stride: %d samples",
        config.sample_rate_hz,
        config.window_size,
        config.stride_size,
    )

    fh = open(args.input, encoding="utf-8") if args.input else sys.stdin
    try:
        with pipeline:
            for line in fh:
                try:
                    events = parse_payload(line)
                except ValueError as e:
                    logger.warning("Bad payload: %s", e)
                    continue
                for event in events:
                    pipeline.on_event(event)
            pipeline.drain()
    except KeyboardInterrupt:
        logger.info("Stopping")
    finally:
        if fh is not sys.stdin:
            fh.close()

    if recorder is not None:
        for path in recorder.files:
            logger.info("Recorded: %s", path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
