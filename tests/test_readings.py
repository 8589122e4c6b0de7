import threading

import pytest

from sensornode.readings import (
    LIGHT_RAW_MAX,
    MOISTURE_RAW_MAX,
    Readings,
    map_range,
    poll_climate,
    poll_distance,
    poll_light,
    poll_moisture,
    run_periodic,
)


class Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, feed, data):
        self.calls.append((feed, data))


def test_map_range_endpoints():
    assert map_range(0, 0, LIGHT_RAW_MAX, 0, 100) == 0
    assert map_range(LIGHT_RAW_MAX, 0, LIGHT_RAW_MAX, 0, 100) == 100


def test_map_range_is_monotonic_and_bounded():
    values = [map_range(raw, 0, MOISTURE_RAW_MAX, 0, 100) for raw in range(0, 3501, 7)]
    assert values == sorted(values)
    assert all(0 <= v <= 100 for v in values)


def test_map_range_truncates_toward_zero():
    assert map_range(-1, 0, 10, 0, 5) == 0


def test_map_range_reversed_output():
    assert map_range(0, 0, 10, 100, 0) == 100
    assert map_range(10, 0, 10, 100, 0) == 0


def test_map_range_empty_input_range():
    with pytest.raises(ValueError):
        map_range(5, 3, 3, 0, 100)


def test_poll_climate_success():
    readings = Readings()
    publish = Recorder()
    assert poll_climate(readings, lambda: (21.5, 40.25), publish) is True
    assert readings.temperature == 21
    assert readings.humidity == 40
    assert publish.calls == [("Temperature", "21.50"), ("Humidity", "40.25")]


def test_poll_climate_failure_leaves_state():
    readings = Readings(temperature=7, humidity=8)
    publish = Recorder()

    def broken():
        raise OSError("checksum")

    assert poll_climate(readings, broken, publish) is False
    assert (readings.temperature, readings.humidity) == (7, 8)
    assert publish.calls == []


def test_poll_distance():
    readings = Readings()
    publish = Recorder()
    assert poll_distance(readings, lambda: 42, publish) == 42
    assert readings.distance == 42
    assert publish.calls == [("Distance", "42")]


def test_poll_moisture_scales_full_range():
    readings = Readings()
    publish = Recorder()
    assert poll_moisture(readings, lambda: MOISTURE_RAW_MAX, publish) == 100
    assert readings.moisture == 100
    assert publish.calls == [("Moisture", "100")]


def test_poll_light_scales_zero():
    readings = Readings(light=55)
    publish = Recorder()
    assert poll_light(readings, lambda: 0, publish) == 0
    assert readings.light == 0
    assert publish.calls == [("Light", "0")]


def test_run_periodic_stops_on_event():
    stop = threading.Event()
    seen = []

    def task():
        seen.append(len(seen))
        if len(seen) == 3:
            stop.set()

    assert run_periodic(task, 0, stop) == 3
    assert seen == [0, 1, 2]


def test_run_periodic_does_nothing_when_already_stopped():
    stop = threading.Event()
    stop.set()
    seen = []
    assert run_periodic(lambda: seen.append(1), 0, stop) == 0
    assert seen == []