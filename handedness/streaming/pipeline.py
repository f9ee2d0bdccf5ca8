from __future__ import annotations

import itertools
import logging
import threading
from concurrent import futures
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

from handedness.streaming.clock import SampleClock
from handedness.streaming.infer import HandednessClassifier
from handedness.streaming.protocol import SensorEvent
from handedness.streaming.recorder import SampleRecorder
from handedness.streaming.windowing import ImuWindow, WindowedClassifier

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    sample_rate_hz: float = 60.0
    window_size: int = 120
    stride_size: int = 60
    channel_count: int = 6
    drop_when_busy: bool = False
    max_session_seconds: float | None = None

    @classmethod
    def from_seconds(
        cls, *, window_seconds: float = 2.0, stride_seconds: float = 1.0, sample_rate_hz: float = 60.0
    ) -> "PipelineConfig":
        return cls(
            sample_rate_hz=float(sample_rate_hz),
            window_size=int(round(window_seconds * sample_rate_hz)),
            stride_size=int(round(stride_seconds * sample_rate_hz)),
        )


@dataclass(frozen=True)
class HandednessResult:
    seq: int
    label: str
    index: int
    confidences: tuple[float, ...]
    t_end_ns: int | None


ResultSink = Callable[[HandednessResult], None]


class HandednessPipeline:
    """Sensor events -> fixed-rate samples -> strided windows -> background inference.

    ``on_event`` runs on the caller's thread and never blocks on inference or
    on the sink: windows are handed to a single worker thread, so results
    complete in window order. Each result carries a sequence number that keeps
    increasing across stop/start cycles. After ``stop()`` no result from the
    previous session reaches the sink.

    Locking: ``_lock`` guards clock, ring buffer and bookkeeping and is only
    held for short CPU work. ``_delivery_lock`` serializes sink calls with
    ``stop()``. Lock order is ``_delivery_lock`` then ``_lock``.
    """

    def __init__(
        self,
        classifier: HandednessClassifier | None,
        *,
        config: PipelineConfig | None = None,
        sink: ResultSink | None = None,
        recorder: SampleRecorder | None = None,
    ):
        self.config = config or PipelineConfig()
        self.classifier = classifier
        self.sink = sink
        self.recorder = recorder

        if classifier is not None:
            if classifier.window_size != self.config.window_size or classifier.channel_count != self.config.channel_count:
                raise ValueError(
                    f"Classifier expects windows of ({classifier.window_size}, {classifier.channel_count}), "
                    f"pipeline produces ({self.config.window_size}, {self.config.channel_count})"
                )
        if self.config.max_session_seconds is not None and self.config.max_session_seconds <= 0:
            raise ValueError("max_session_seconds must be > 0")

        self.clock = SampleClock(rate_hz=self.config.sample_rate_hz)
        self.windowing = WindowedClassifier(
            window_size=self.config.window_size,
            channel_count=self.config.channel_count,
            stride_size=self.config.stride_size,
        )

        self._lock = threading.RLock()
        self._delivery_lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Future] = set()
        self._session = 0
        self._session_start_ns: int | None = None
        self._seq = itertools.count()
        self._running = False
        self.dropped_windows = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self) -> "HandednessPipeline":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self.clock.reset()
            self.windowing.reset()
            self._session_start_ns = None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="handedness-infer")
            if self.recorder is not None:
                self.recorder.open()
            self._running = True
        logger.debug("Pipeline started (session %d)", self._session)

    def stop(self) -> None:
        # Waits for a sink call in progress, so nothing is delivered once this returns.
        with self._delivery_lock, self._lock:
            if not self._running:
                return
            self._running = False
            self._session += 1
            pending = list(self._pending)
            for fut in pending:
                fut.cancel()
            self.clock.reset()
            self.windowing.reset()
            self._session_start_ns = None
            if self.recorder is not None:
                self.recorder.close()
        logger.debug("Pipeline stopped; %d pending inference(s) cancelled", len(pending))

    def drain(self, timeout: float | None = None) -> None:
        """Wait for all submitted inferences of the current session to finish."""

        with self._lock:
            pending = list(self._pending)
        futures.wait(pending, timeout=timeout)

    def close(self) -> None:
        self.stop()
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None

    def on_event(self, event: SensorEvent) -> Future | None:
        """Feed one sensor event. Returns a future when a window was submitted."""

        try:
            with self._lock:
                if not self._running:
                    return None
                expired = self._session_expired(event.t_ns)
                if not expired:
                    return self._process(event, self._session)
        except Exception:
            logger.exception("Failed to process sensor event %r", event)
            return None

        logger.info("Session limit of %.1fs reached; stopping", self.config.max_session_seconds)
        self.stop()
        return None

    def _session_expired(self, t_ns: int) -> bool:
        limit = self.config.max_session_seconds
        if limit is None:
            return False
        if self._session_start_ns is None:
            self._session_start_ns = int(t_ns)
            return False
        return (int(t_ns) - self._session_start_ns) >= int(round(limit * 1e9))

    def _process(self, event: SensorEvent, session: int) -> Future | None:
        sample = self.clock.observe(event)
        if sample is None:
            return None

        window = self.windowing.ingest(sample, t_ns=event.t_ns)
        if self.recorder is not None:
            self.recorder.write(event.t_ns, sample)

        if window is None or self.classifier is None:
            return None
        return self._submit(window, session)

    def _submit(self, window: ImuWindow, session: int) -> Future | None:
        with self._lock:
            # Reject windows from a session that has since been stopped.
            if not self._running or session != self._session:
                logger.debug("Pipeline stopped; not submitting window")
                return None
            assert self._executor is not None
            if self.config.drop_when_busy and any(not f.done() for f in self._pending):
                self.dropped_windows += 1
                logger.debug("Inference still in flight; dropping window")
                return None
            seq = next(self._seq)
            fut = self._executor.submit(self._infer, window, seq, session)
            self._pending.add(fut)
        fut.add_done_callback(self._forget)
        return fut

    def _forget(self, fut: Future) -> None:
        with self._lock:
            self._pending.discard(fut)

    def _infer(self, window: ImuWindow, seq: int, session: int) -> HandednessResult | None:
        assert self.classifier is not None
        try:
            res = self.classifier.classify(window.x)
        except Exception:
            logger.exception("Inference failed for window %d", seq)
            raise

        result = HandednessResult(
            seq=seq,
            label=res.label,
            index=res.index,
            confidences=tuple(float(c) for c in res.confidences),
            t_end_ns=window.t_end_ns,
        )

        with self._delivery_lock:
            if session != self._session:
                logger.debug("Discarding result %d from a stopped session", seq)
                return None
            if self.sink is not None:
                try:
                    self.sink(result)
                except Exception:
                    logger.exception("Result sink failed for window %d", seq)
        return result
