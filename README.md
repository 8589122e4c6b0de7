# sensornode

`sensornode` is a small library for a sensor node that reports over MQTT. It
has a compact MQTT 3.1.1 client that runs over any byte transport, and helpers
that poll sensors, keep their latest values and hand them to a publish
function.

It has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Package layout

| Module | What it holds |
| --- | --- |
| `sensornode.codes` | `PacketType`, `State` and the wire encoders `encode_remaining_length`, `encode_string`, `fixed_header` |
| `sensornode.client` | `MqttClient`, the `Transport` interface and the TCP `SocketTransport` |
| `sensornode.readings` | `Readings`, the `poll_*` functions, `map_range` and `run_periodic` |

## Wire encoding

`sensornode.codes` holds the MQTT control packet types (`PacketType`, already
shifted into the high nibble), the client states (`State`) and three encoders:

- `encode_remaining_length(length)` gives the variable-length bytes of a
  remaining-length field, and raises `ValueError` for negative lengths or
  lengths above 268,435,455.
- `encode_string(text)` gives a two-byte big-endian length followed by the
  UTF-8 bytes, and raises `ValueError` past 65,535 bytes.
- `fixed_header(header, length)` gives the type/flags byte followed by the
  encoded remaining length.

```python
from sensornode.codes import PacketType, fixed_header

fixed_header(PacketType.PINGREQ, 0)  # b"\xc0\x00"
```

## The MQTT client

`MqttClient` speaks MQTT 3.1.1 over any object that follows the `Transport`
interface (`connect`, `write`, `available`, `read`, `flush`, `stop`,
`connected`). `SocketTransport` is the plain TCP one, built on `socket` and
`select`.

The client supports connect with username, password, last-will and a
clean-session flag; QoS 0 publish, including retained messages, byte-by-byte
publishing with `publish_p`, and streamed publishing with `begin_publish` /
`write` / `end_publish`; subscribe and unsubscribe at QoS 0 or 1; keep-alive
pings; and delivery of incoming QoS 0 and QoS 1 messages to a callback, which
receives the topic as `str` and the payload as `bytes`. QoS 1 messages are
acknowledged after the callback returns.

```python
from sensornode.client import MqttClient, SocketTransport

def on_message(topic, payload):
    print(topic, payload)

client = MqttClient(
    transport=SocketTransport(),
    host="localhost",
    port=1883,
    callback=on_message,
)

password = "password"
if client.connect("node-1", user="user", password=password):
    client.subscribe("sensors/#", qos=1)
    client.publish("sensors/temperature", "21")
    while client.connected():
        client.loop()
else:
    print("connect failed:", client.state)
```

Points worth knowing:

- `connect`, `publish`, `subscribe` and `unsubscribe` return `False` rather
  than raising when the client is not connected or the packet would not fit
  the buffer. `subscribe` raises `ValueError` for a QoS other than 0 or 1.
- `client.state` is a `State` after a failure or a successful connect; a
  CONNACK return code outside the known ones is kept as a plain `int`.
- `client.buffer_size` (default 1024) bounds outgoing publishes and incoming
  packets; an incoming packet larger than the buffer is dropped unless a
  `stream` was given, in which case the PUBLISH payload is written to it.
- `keep_alive` and `socket_timeout` are in seconds (both default to 15). The
  `clock` argument supplies the time source and defaults to `time.monotonic`.
- `loop()` must be called regularly: it sends keep-alive pings, answers the
  broker's pings, acknowledges QoS 1 messages and hands received messages to
  the callback. It returns `False` once the connection has been lost or a ping
  went unanswered.

## Sensor readings

`Readings` is a dataclass holding the latest `temperature`, `humidity`,
`distance`, `moisture` and `light` values as whole numbers.

Each `poll_*` function takes a `Readings`, a sensor callable and a publish
callable `publish(feed, value)`:

- `poll_climate` calls the sensor for `(temperature, humidity)`, stores them
  truncated to integers and publishes both to the `Temperature` and `Humidity`
  feeds with two decimals. An `OSError` from the sensor is logged and the
  function returns `False`.
- `poll_distance` stores and publishes the distance in centimetres to
  `Distance`.
- `poll_moisture` scales a raw reading of 0–3500 to a percentage and publishes
  it to `Moisture`.
- `poll_light` scales a raw reading of 0–4095 to a percentage and publishes it
  to `Light`.

`map_range(value, in_min, in_max, out_min, out_max)` does the linear scaling
with truncation toward zero. `run_periodic(task, interval, stop_event)` calls
`task` every `interval` seconds until the `threading.Event` is set and returns
how many times it ran.

```python
import threading

from sensornode.readings import Readings, poll_light, run_periodic

readings = Readings()
stop = threading.Event()

def publish(feed, value):
    client.publish(f"user/feeds/{feed}", value)

run_periodic(lambda: poll_light(readings, read_light_adc, publish), 5.0, stop)
```

## What this package does not do

- It installs no command; wiring the client and the polling tasks together
  is left to the program that uses it.
- It has no web server or dashboard.
- It does not drive outputs such as RGB LEDs, relays, fans or an LCD.
- It does not talk to sensor hardware: every sensor is a callable you supply.