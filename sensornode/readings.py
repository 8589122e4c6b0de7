"""Shared sensor readings and the periodic polling tasks that fill them."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Tuple

logger = logging.getLogger(__name__)

Publish = Callable[[str, str], object]

MOISTURE_RAW_MAX = 3500
LIGHT_RAW_MAX = 4095
POLL_INTERVAL = 5.0


@dataclass
class Readings:
    """The latest value of every sensor, as whole numbers."""

    temperature: int = 0
    humidity: int = 0
    distance: int = 0
    moisture: int = 0
    light: int = 0


def map_range(value: int, in_min: int, in_max: int, out_min: int, out_max: int) -> int:
    """Re-scale an integer linearly, truncating toward zero like integer division."""
    span = in_max - in_min
    if span == 0:
        raise ValueError("input range must not be empty")
    numerator = (value - in_min) * (out_max - out_min)
    quotient = abs(numerator) // abs(span)
    if (numerator < 0) != (span < 0):
        quotient = -quotient
    return quotient + out_min


def poll_climate(
    readings: Readings, sensor: Callable[[], Tuple[float, float]], publish: Publish
) -> bool:
    """Read (temperature, humidity) once; store, log and publish on success."""
    try:
        temperature, humidity = sensor()
    except OSError as exc:
        logger.warning("Failed to read DHT20 sensor: %s", exc)
        return False
    readings.temperature = int(temperature)
    readings.humidity = int(humidity)
    logger.info("%.2f-%.2f", temperature, humidity)
    publish("Temperature", f"{temperature:.2f}")
    publish("Humidity", f"{humidity:.2f}")
    return True


def poll_distance(readings: Readings, sensor: Callable[[], int], publish: Publish) -> int:
    """Read the ultrasonic distance in centimetres, store and publish it."""
    readings.distance = int(sensor())
    logger.info("Distance: %d cm", readings.distance)
    publish("Distance", str(readings.distance))
    return readings.distance


def poll_moisture(readings: Readings, sensor: Callable[[], int], publish: Publish) -> int:
    """Read soil moisture, scale it to a percentage, store and publish it."""
    readings.moisture = map_range(int(sensor()), 0, MOISTURE_RAW_MAX, 0, 100)
    logger.info("Moisture Value: %d%%", readings.moisture)
    publish("Moisture", str(readings.moisture))
    return readings.moisture


def poll_light(readings: Readings, sensor: Callable[[], int], publish: Publish) -> int:
    """Read the light level, scale it to a percentage, store and publish it."""
    readings.light = map_range(int(sensor()), 0, LIGHT_RAW_MAX, 0, 100)
    logger.info("Light Sensor Value: %d%%", readings.light)
    publish("Light", str(readings.light))
    return readings.light


def run_periodic(
    task: Callable[[], object], interval: float, stop_event: threading.Event
) -> int:
    """Run task every interval seconds until stop_event is set; return the run count."""
    runs = 0
    while not stop_event.is_set():
        task()
        runs += 1
        if stop_event.wait(interval):
            break
    return runs