import pytest

from sensornode.codes import (
    MAX_REMAINING_LENGTH,
    QOS1,
    PacketType,
    encode_remaining_length,
    encode_string,
    fixed_header,
)


def _decode_remaining_length(data):
    value = 0
    multiplier = 1
    for consumed, byte in enumerate(data, start=1):
        value += (byte & 0x7F) * multiplier
        multiplier <<= 7
        if not byte & 0x80:
            return value, consumed
    raise AssertionError("unterminated remaining length")


def test_publish_header_matches_wire_bytes():
    assert fixed_header(PacketType.PUBLISH, 0x0E) == bytes([0x30, 0x0E])


def test_connect_header_matches_wire_bytes():
    assert fixed_header(PacketType.CONNECT, 0x18) == bytes([0x10, 0x18])


def test_subscribe_header_with_qos_flag():
    assert fixed_header(PacketType.SUBSCRIBE | QOS1, 0x0A) == bytes([0x82, 0x0A])


def test_retained_publish_header():
    assert fixed_header(PacketType.PUBLISH | 1, 0x0C) == bytes([0x31, 0x0C])


@pytest.mark.parametrize(
    "packet, wire",
    [
        (PacketType.PINGREQ, bytes([0xC0, 0x00])),
        (PacketType.PINGRESP, bytes([0xD0, 0x00])),
        (PacketType.DISCONNECT, bytes([0xE0, 0x00])),
    ],
)
def test_empty_packets(packet, wire):
    assert fixed_header(packet, 0) == wire


def test_encode_string_topic():
    assert encode_string("topic") == bytes([0x00, 0x05, 0x74, 0x6F, 0x70, 0x69, 0x63])


def test_encode_string_accepts_bytes():
    assert encode_string(b"user") == bytes([0x00, 0x04, 0x75, 0x73, 0x65, 0x72])


def test_encode_empty_string():
    assert encode_string("") == bytes([0x00, 0x00])


@pytest.mark.parametrize("text", ["willTopic", "é ünïcode", "x" * 300])
def test_encode_string_prefix_matches_payload(text):
    encoded = encode_string(text)
    assert int.from_bytes(encoded[:2], "big") == len(encoded) - 2
    assert encoded[2:].decode("utf-8") == text


def test_encode_string_too_long():
    with pytest.raises(ValueError):
        encode_string("a" * 65536)


def test_zero_remaining_length_is_single_byte():
    assert encode_remaining_length(0) == bytes([0x00])


@pytest.mark.parametrize(
    "length", [0, 1, 127, 128, 300, 16383, 16384, 2097151, 2097152, MAX_REMAINING_LENGTH]
)
def test_remaining_length_round_trip(length):
    encoded = encode_remaining_length(length)
    value, consumed = _decode_remaining_length(encoded)
    assert value == length
    assert consumed == len(encoded)
    assert len(encoded) <= 4
    assert all(b & 0x80 for b in encoded[:-1])
    assert not encoded[-1] & 0x80


@pytest.mark.parametrize("boundary", [127, 16383, 2097151])
def test_remaining_length_grows_at_boundaries(boundary):
    assert len(encode_remaining_length(boundary)) < len(
        encode_remaining_length(boundary + 1)
    )
    assert len(encode_remaining_length(boundary - 1)) == len(
        encode_remaining_length(boundary)
    )


@pytest.mark.parametrize("length", [-1, MAX_REMAINING_LENGTH + 1])
def test_remaining_length_out_of_range(length):
    with pytest.raises(ValueError):
        encode_remaining_length(length)


def test_fixed_header_is_type_then_length():
    header = fixed_header(PacketType.PUBLISH, 200)
    assert header[0] == PacketType.PUBLISH
    assert header[1:] == encode_remaining_length(200)


@pytest.mark.parametrize("header", [-1, 256])
def test_fixed_header_rejects_bad_byte(header):
    with pytest.raises(ValueError):
        fixed_header(header, 0)