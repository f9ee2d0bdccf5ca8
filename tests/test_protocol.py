import json

import pytest

from handedness.streaming.protocol import SensorSource, parse_payload


def test_single_event():
    events = parse_payload(json.dumps({"sensor": "acc", "t_ns": 1000, "x": 1, "y": 2, "z": 3}).encode())
    assert len(events) == 1
    assert events[0].source is SensorSource.ACCELEROMETER
    assert events[0].values == (1.0, 2.0, 3.0)
    assert events[0].t_ns == 1000


def test_batch_and_list_payloads():
    batch = {
        "events": [
            {"sensor": "gyroscope", "t_ns": 1, "values": [0.1, 0.2, 0.3]},
            {"sensor": "accelerometer", "t_ns": 2, "values": [1, 2, 3]},
        ]
    }
    events = parse_payload(json.dumps(batch))
    assert [e.source for e in events] == [SensorSource.GYROSCOPE, SensorSource.ACCELEROMETER]
    assert len(parse_payload(json.dumps(batch["events"]))) == 2


def test_seconds_timestamp_converted():
    events = parse_payload(json.dumps({"sensor": "gyro", "t": 1.5, "x": 0, "y": 0, "z": 0}))
    assert events[0].t_ns == 1_500_000_000


def test_empty_payload():
    assert parse_payload(b"  \n") == []


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        json.dumps({"sensor": "magnetometer", "t_ns": 1, "x": 0, "y": 0, "z": 0}),
        json.dumps({"sensor": "acc", "x": 0, "y": 0, "z": 0}),
        json.dumps({"sensor": "acc", "t_ns": 1, "x": 0, "y": 0}),
        json.dumps({"sensor": "acc", "t_ns": 1, "values": [1, 2]}),
        json.dumps(42),
    ],
)
def test_malformed_payloads_rejected(payload):
    with pytest.raises(ValueError):
        parse_payload(payload)
