"""A small MQTT 3.1.1 client that runs over any byte transport."""

from __future__ import annotations

import select
import socket
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional, Union

from sensornode.codes import (
    KEEPALIVE,
    MAX_HEADER_SIZE,
    MAX_PACKET_SIZE,
    PROTOCOL_HEADER,
    QOS1,
    SOCKET_TIMEOUT,
    PacketType,
    State,
    encode_string,
    fixed_header,
)

MessageCallback = Callable[[str, bytes], None]
Payload = Union[str, bytes, bytearray, None]


class Transport(ABC):
    """A byte-oriented connection the client talks MQTT over."""

    @abstractmethod
    def connect(self, host: str, port: int) -> bool:
        """Open the connection; return whether it succeeded."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Send bytes and return how many were written."""

    @abstractmethod
    def available(self) -> int:
        """Return how many bytes can be read without waiting."""

    @abstractmethod
    def read(self) -> int:
        """Return the next received byte."""

    @abstractmethod
    def flush(self) -> None:
        """Discard anything still pending on the connection."""

    @abstractmethod
    def stop(self) -> None:
        """Close the connection."""

    @abstractmethod
    def connected(self) -> bool:
        """Return whether the connection is open."""


class SocketTransport(Transport):
    """A TCP transport built on the standard socket module."""

    def __init__(self, timeout: float = 15.0, poll_interval: float = 0.01) -> None:
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._sock: Optional[socket.socket] = None
        self._pending = bytearray()

    def connect(self, host: str, port: int) -> bool:
        self.stop()
        self._pending.clear()
        try:
            self._sock = socket.create_connection((host, port), timeout=self.timeout)
        except OSError:
            self._sock = None
            return False
        return True

    def write(self, data: bytes) -> int:
        if self._sock is None:
            return 0
        try:
            self._sock.sendall(data)
        except OSError:
            self.stop()
            return 0
        return len(data)

    def available(self) -> int:
        if self._pending or self._sock is None:
            return len(self._pending)
        try:
            ready, _, _ = select.select([self._sock], [], [], self.poll_interval)
            if ready:
                chunk = self._sock.recv(4096)
                if not chunk:
                    self.stop()
                else:
                    self._pending += chunk
        except OSError:
            self.stop()
        return len(self._pending)

    def read(self) -> int:
        if not self._pending and not self.available():
            raise ConnectionError("no data available")
        value = self._pending[0]
        del self._pending[0]
        return value

    def flush(self) -> None:
        """Drop received bytes that have not been read yet."""
        self._pending.clear()

    def stop(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None

    def connected(self) -> bool:
        return self._sock is not None


@dataclass(frozen=True)
class _Packet:
    data: bytes
    length_bytes: int


def _to_bytes(value: Payload) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class MqttClient:
    """MQTT client with QoS 0/1 receive, QoS 0 publish and keep-alive."""

    def __init__(
        self,
        transport: Transport,
        host: Optional[str] = None,
        port: int = 1883,
        callback: Optional[MessageCallback] = None,
        stream: Optional[BinaryIO] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.transport = transport
        self.host = host
        self.port = port
        self.callback = callback
        self.stream = stream
        self.keep_alive = KEEPALIVE
        self.socket_timeout = SOCKET_TIMEOUT
        self._clock = clock
        self._buffer_size = MAX_PACKET_SIZE
        self._state: Union[State, int] = State.DISCONNECTED
        self._next_msg_id = 0
        self._last_in = 0.0
        self._last_out = 0.0
        self._ping_outstanding = False

    @property
    def state(self) -> Union[State, int]:
        """The last connection state; unknown CONNACK codes stay plain ints."""
        return self._state

    @property
    def buffer_size(self) -> int:
        return self._buffer_size

    @buffer_size.setter
    def buffer_size(self, size: int) -> None:
        if not 0 < size <= 0xFFFF:
            raise ValueError(f"buffer size must be between 1 and 65535: {size}")
        self._buffer_size = size

    def set_server(self, host: str, port: int) -> None:
        self.host = host
        self.port = port

    def _fits(self, position: int, data: bytes) -> bool:
        return position + 2 + len(data) <= self._buffer_size

    def connect(
        self,
        client_id: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        will_topic: Optional[str] = None,
        will_qos: int = 0,
        will_retain: bool = False,
        will_message: Payload = None,
        clean_session: bool = True,
    ) -> bool:
        """Open the session; return True once the broker accepts it."""
        if self.connected():
            return True
        if self.transport.connected():
            opened = True
        else:
            if self.host is None:
                raise ValueError("no server configured")
            opened = self.transport.connect(self.host, self.port)
        if not opened:
            self._state = State.CONNECT_FAILED
            return False

        self._next_msg_id = 1
        flags = 0
        if will_topic:
            flags = 0x04 | (will_qos << 3) | (int(bool(will_retain)) << 5)
        if clean_session:
            flags |= 0x02
        if user is not None:
            flags |= 0x80
            if password is not None:
                flags |= 0x40

        body = bytearray(PROTOCOL_HEADER)
        body.append(flags)
        body += self.keep_alive.to_bytes(2, "big")

        fields = [_to_bytes(client_id)]
        if will_topic:
            fields += [_to_bytes(will_topic), _to_bytes(will_message)]
        if user is not None:
            fields.append(_to_bytes(user))
            if password is not None:
                fields.append(_to_bytes(password))
        for field in fields:
            if not self._fits(MAX_HEADER_SIZE + len(body), field):
                self.transport.stop()
                return False
            body += encode_string(field)

        self._send(PacketType.CONNECT, bytes(body))
        self._last_in = self._last_out = self._clock()

        while not self.transport.available():
            if self._clock() - self._last_in >= self.socket_timeout:
                self._state = State.CONNECTION_TIMEOUT
                self.transport.stop()
                return False

        packet = self._read_packet()
        if packet is not None and len(packet.data) == 4:
            code = packet.data[3]
            if code == 0:
                self._last_in = self._clock()
                self._ping_outstanding = False
                self._state = State.CONNECTED
                return True
            try:
                self._state = State(code)
            except ValueError:
                self._state = code
        self.transport.stop()
        return False

    def _read_byte(self) -> Optional[int]:
        start = self._clock()
        while not self.transport.available():
            if self._clock() - start >= self.socket_timeout:
                return None
        return self.transport.read()

    def _read_packet(self) -> Optional[_Packet]:
        first = self._read_byte()
        if first is None:
            return None
        data = bytearray([first])
        is_publish = (first & 0xF0) == PacketType.PUBLISH

        multiplier = 1
        length = 0
        while True:
            if len(data) == 5:
                self._state = State.DISCONNECTED
                self.transport.stop()
                return None
            digit = self._read_byte()
            if digit is None:
                return None
            data.append(digit)
            length += (digit & 0x7F) * multiplier
            multiplier <<= 7
            if not digit & 0x80:
                break
        length_bytes = len(data) - 1

        skip = 0
        start = 0
        if is_publish:
            for _ in range(2):
                byte = self._read_byte()
                if byte is None:
                    return None
                data.append(byte)
            skip = (data[length_bytes + 1] << 8) + data[length_bytes + 2]
            start = 2
            if first & QOS1:
                skip += 2

        index = len(data)
        for _ in range(start, length):
            digit = self._read_byte()
            if digit is None:
                return None
            if self.stream is not None and is_publish and index - length_bytes - 2 > skip:
                self.stream.write(bytes([digit]))
            if len(data) < self._buffer_size:
                data.append(digit)
            index += 1

        if self.stream is None and index > self._buffer_size:
            return None
        return _Packet(bytes(data), length_bytes)

    def loop(self) -> bool:
        """Service keep-alive and one incoming packet; False once disconnected."""
        if not self.connected():
            return False
        now = self._clock()
        if now - self._last_in > self.keep_alive or now - self._last_out > self.keep_alive:
            if self._ping_outstanding:
                self._state = State.CONNECTION_TIMEOUT
                self.transport.stop()
                return False
            self.transport.write(bytes([PacketType.PINGREQ, 0]))
            self._last_out = self._last_in = now
            self._ping_outstanding = True

        if self.transport.available():
            packet = self._read_packet()
            if packet is not None:
                self._last_in = now
                self._dispatch(packet, now)
            elif not self.connected():
                return False
        return True

    def _dispatch(self, packet: _Packet, now: float) -> None:
        data = packet.data
        kind = data[0] & 0xF0
        if kind == PacketType.PUBLISH:
            if self.callback is None:
                return
            llen = packet.length_bytes
            topic_len = (data[llen + 1] << 8) + data[llen + 2]
            topic_end = llen + 3 + topic_len
            topic = data[llen + 3:topic_end].decode("utf-8", errors="replace")
            if (data[0] & 0x06) == QOS1:
                msg_id = data[topic_end:topic_end + 2]
                self.callback(topic, data[topic_end + 2:])
                self.transport.write(bytes([PacketType.PUBACK, 2]) + msg_id)
                self._last_out = now
            else:
                self.callback(topic, data[topic_end:])
        elif kind == PacketType.PINGREQ:
            self.transport.write(bytes([PacketType.PINGRESP, 0]))
        elif kind == PacketType.PINGRESP:
            self._ping_outstanding = False

    def _send(self, header: int, body: bytes) -> bool:
        packet = fixed_header(header, len(body)) + body
        written = self.transport.write(packet)
        self._last_out = self._clock()
        return written == len(packet)

    def publish(self, topic: str, payload: Payload = None, retained: bool = False) -> bool:
        """Send a QoS 0 message; False if not connected or it exceeds the buffer."""
        if not self.connected():
            return False
        topic_bytes = _to_bytes(topic)
        data = _to_bytes(payload)
        if self._buffer_size < MAX_HEADER_SIZE + 2 + len(topic_bytes) + len(data):
            return False
        header = PacketType.PUBLISH | (1 if retained else 0)
        return self._send(header, encode_string(topic_bytes) + data)

    def publish_p(self, topic: str, payload: Payload = None, retained: bool = False) -> bool:
        """Send a QoS 0 message byte by byte, without the buffer-size limit."""
        if not self.connected():
            return False
        topic_bytes = _to_bytes(topic)
        data = _to_bytes(payload)
        header = PacketType.PUBLISH | (1 if retained else 0)
        head = fixed_header(header, len(data) + 2 + len(topic_bytes)) + encode_string(topic_bytes)
        written = self.transport.write(head)
        for byte in data:
            written += self.transport.write(bytes([byte]))
        self._last_out = self._clock()
        return written == len(head) + len(data)

    def begin_publish(self, topic: str, length: int, retained: bool = False) -> bool:
        """Send a PUBLISH header for a payload of `length` bytes to follow."""
        if not self.connected():
            return False
        topic_field = encode_string(_to_bytes(topic))
        header = PacketType.PUBLISH | (1 if retained else 0)
        head = fixed_header(header, length + len(topic_field)) + topic_field
        written = self.transport.write(head)
        self._last_out = self._clock()
        return written == len(head)

    def write(self, data: Union[int, bytes, bytearray]) -> int:
        """Write payload bytes of a message started with begin_publish."""
        chunk = bytes([data]) if isinstance(data, int) else bytes(data)
        self._last_out = self._clock()
        return self.transport.write(chunk)

    def end_publish(self) -> bool:
        return True

    def _next_id(self) -> bytes:
        self._next_msg_id = (self._next_msg_id + 1) & 0xFFFF
        if self._next_msg_id == 0:
            self._next_msg_id = 1
        return self._next_msg_id.to_bytes(2, "big")

    def subscribe(self, topic: str, qos: int = 0) -> bool:
        if qos not in (0, 1):
            raise ValueError(f"qos must be 0 or 1: {qos}")
        topic_bytes = _to_bytes(topic)
        if self._buffer_size < 9 + len(topic_bytes):
            return False
        if not self.connected():
            return False
        body = self._next_id() + encode_string(topic_bytes) + bytes([qos])
        return self._send(PacketType.SUBSCRIBE | QOS1, body)

    def unsubscribe(self, topic: str) -> bool:
        topic_bytes = _to_bytes(topic)
        if self._buffer_size < 9 + len(topic_bytes):
            return False
        if not self.connected():
            return False
        body = self._next_id() + encode_string(topic_bytes)
        return self._send(PacketType.UNSUBSCRIBE | QOS1, body)

    def disconnect(self) -> None:
        self.transport.write(bytes([PacketType.DISCONNECT, 0]))
        self._state = State.DISCONNECTED
        self.transport.flush()
        self.transport.stop()
        self._last_in = self._last_out = self._clock()

    def connected(self) -> bool:
        if self.transport is None:
            return False
        if not self.transport.connected():
            if self._state == State.CONNECTED:
                self._state = State.CONNECTION_LOST
                self.transport.flush()
                self.transport.stop()
            return False
        return self._state == State.CONNECTED