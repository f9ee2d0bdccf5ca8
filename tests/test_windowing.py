import numpy as np
import pytest

from handedness.streaming.windowing import RingBuffer, WindowedClassifier


def _sample(i, channels=6):
    return np.full(channels, float(i), dtype=np.float32)


def test_ring_buffer_snapshot_is_chronological_after_wrap():
    ring = RingBuffer(capacity=4, channel_count=2)
    for i in range(6):
        ring.write(_sample(i, channels=2))

    assert ring.is_full
    assert ring.write_pos == 2
    assert ring.live_count == 4
    assert ring.snapshot()[:, 0].tolist() == [2, 3, 4, 5]


def test_ring_buffer_partial_snapshot():
    ring = RingBuffer(capacity=4, channel_count=1)
    ring.write(_sample(7, channels=1))
    assert not ring.is_full
    assert ring.snapshot()[:, 0].tolist() == [7]


def test_no_window_before_buffer_is_full():
    w = WindowedClassifier(window_size=120, channel_count=6, stride_size=60)
    for i in range(119):
        assert w.ingest(_sample(i)) is None

    window = w.ingest(_sample(119), t_ns=42)
    assert window is not None
    assert window.x.shape == (120, 6)
    assert window.x[:, 0].tolist() == list(range(120))
    assert window.t_end_ns == 42


def test_one_window_per_stride_once_full():
    w = WindowedClassifier(window_size=120, channel_count=6, stride_size=60)
    emitted_at = [i for i in range(300) if w.ingest(_sample(i)) is not None]
    assert emitted_at == [119, 179, 239, 299]
    assert w.windows_emitted == 4


def test_window_order_is_independent_of_write_position():
    w = WindowedClassifier(window_size=120, channel_count=6, stride_size=60)
    windows = [w.ingest(_sample(i)) for i in range(180)]
    last = windows[-1]
    assert last is not None
    assert w.ring.write_pos == 60
    np.testing.assert_array_equal(last.x[:, 3], np.arange(60, 180, dtype=np.float32))


def test_window_is_a_snapshot():
    w = WindowedClassifier(window_size=4, channel_count=6, stride_size=2)
    windows = [w.ingest(_sample(i)) for i in range(6)]
    first = windows[3]
    assert first.x[:, 0].tolist() == [0, 1, 2, 3]
    assert windows[5].x[:, 0].tolist() == [2, 3, 4, 5]
    assert first.x[:, 0].tolist() == [0, 1, 2, 3]


def test_stride_equal_to_window_gives_disjoint_windows():
    w = WindowedClassifier(window_size=10, channel_count=6, stride_size=10)
    windows = [win for win in (w.ingest(_sample(i)) for i in range(30)) if win is not None]
    assert [win.x[0, 0] for win in windows] == [0, 10, 20]


def test_reset_clears_occupancy():
    w = WindowedClassifier(window_size=120, channel_count=6, stride_size=60)
    for i in range(150):
        w.ingest(_sample(i))
    w.reset()

    assert w.ring.live_count == 0
    assert w.ring.write_pos == 0
    assert w.samples_since_last_trigger == 0
    assert all(w.ingest(_sample(i)) is None for i in range(119))
    assert w.ingest(_sample(119)) is not None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"window_size": 0},
        {"stride_size": 0},
        {"window_size": 10, "stride_size": 11},
    ],
)
def test_invalid_configuration_rejected(kwargs):
    with pytest.raises(ValueError):
        WindowedClassifier(**kwargs)


def test_wrong_sample_length_rejected():
    w = WindowedClassifier()
    with pytest.raises(ValueError):
        w.ingest(np.zeros(5, dtype=np.float32))
