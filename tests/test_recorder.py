import csv

import numpy as np

from handedness.streaming.recorder import HEADER, SampleRecorder


def _rows(path):
    with path.open(newline="", encoding="utf-8") as fh:
        return list(csv.reader(fh))


def test_records_samples_with_header(tmp_path):
    rec = SampleRecorder(tmp_path, handedness="left")
    rec.open()
    rec.write(1000, np.array([1, 2, 3, 4, 5, 6], dtype=np.float32))
    rec.write(2000, np.zeros(6, dtype=np.float32))
    rec.close()

    assert len(rec.files) == 1
    assert rec.files[0].name.startswith("IMU_LEFT_")
    rows = _rows(rec.files[0])
    assert rows[0] == HEADER
    assert rows[1] == ["1000", "LEFT", "1.0", "2.0", "3.0", "4.0", "5.0", "6.0"]
    assert len(rows) == 3


def test_rotates_when_file_grows_too_large(tmp_path):
    rec = SampleRecorder(tmp_path, max_bytes=200)
    rec.open()
    for i in range(20):
        rec.write(i, np.full(6, float(i), dtype=np.float32))
    rec.close()

    assert len(rec.files) > 1
    assert len(set(rec.files)) == len(rec.files)
    data_rows = sum(len(_rows(p)) - 1 for p in rec.files)
    assert data_rows == 20
    assert all(_rows(p)[0] == HEADER for p in rec.files)


def test_write_when_closed_is_ignored(tmp_path):
    rec = SampleRecorder(tmp_path)
    rec.write(1, np.zeros(6, dtype=np.float32))
    assert rec.files == []
    assert not rec.is_open


def test_failed_rotation_stops_recording_quietly(tmp_path):
    rec = SampleRecorder(tmp_path / "rec", max_bytes=200)
    rec.open()
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    rec.out_dir = blocker / "sub"

    for i in range(20):
        rec.write(i, np.full(6, float(i), dtype=np.float32))

    assert not rec.is_open
    assert len(rec.files) == 1
    assert _rows(rec.files[0])[0] == HEADER
    rec.close()
