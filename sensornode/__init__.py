"""Sensor node library: an MQTT 3.1.1 client, wire encoders and sensor polling helpers."""

__version__ = "0.1.0"