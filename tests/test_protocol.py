import io
import logging
import zlib

import pytest

from dcfphase.protocol import (
    FRAME_SIZE,
    Flag,
    Message,
    MessageDecoder,
    MessageHeader,
    ProtocolError,
    encode_frame,
    parse_message,
)


def _header(message_id=0x5009, shift=3, flags=Flag.FIFO_OVERRUN_STICKY):
    return MessageHeader(
        message_id=message_id,
        average=0x7FF0,
        amplitude=1234,
        min_max=(12, 4000),
        flags=flags,
        sample_shift=shift,
    )


def _samples(seed=0):
    return [((seed + 7 * i) & 0xFFF, (seed * 3 + 11 * i) & 0xFFF) for i in range(31)]


def _payload(header, samples):
    first = encode_frame(header, samples, 0)
    second = encode_frame(_header(message_id=1), _samples(1), zlib.crc32(first))
    return MessageDecoder(io.BytesIO(first + second)).read()


def test_zero_frame_wire_bytes():
    header = MessageHeader(0, 0, 0, (0, 0), Flag(0), 0)
    frame = encode_frame(header, [(0, 0)] * 31, 0)
    assert frame == b"\x01" * (FRAME_SIZE - 1) + b"\x00"


def test_frame_has_single_terminating_zero():
    frame = encode_frame(_header(), _samples(), 0xDEADBEEF)
    assert len(frame) == FRAME_SIZE
    assert frame[-1] == 0
    assert frame.count(0) == 1


def test_u12x2_wire_layout():
    header = _header()
    samples = [(0, 0)] * 30 + [(0xABC, 0x123)]
    payload = _payload(header, samples)
    assert payload[-3:] == b"\x23\xc1\xab"


def test_round_trip_through_decoder():
    header = _header()
    samples = _samples(5)
    message = parse_message(_payload(header, samples))
    assert isinstance(message, Message)
    assert message.header == header
    assert list(message.samples) == samples
    assert message.message_id == header.message_id
    assert message.sample_shift == header.sample_shift
    assert message.min_max == header.min_max
    assert message.flags == Flag.FIFO_OVERRUN_STICKY


def test_unknown_flag_bits_retained():
    header = _header(flags=Flag(0x81))
    message = parse_message(_payload(header, _samples()))
    assert int(message.flags) == 0x81
    assert Flag.FIFO_OVERRUN_NOW in message.flags


def test_parse_rejects_wrong_sizes():
    payload = _payload(_header(), _samples())
    with pytest.raises(ProtocolError, match="too short"):
        parse_message(payload[:-1])
    with pytest.raises(ProtocolError, match="too large: 1 bytes"):
        parse_message(payload + b"\x01")


def test_decoder_skips_garbage_and_first_frame(caplog):
    h1, h2 = _header(message_id=10), _header(message_id=11)
    first = encode_frame(h1, _samples(1), 0)
    second = encode_frame(h2, _samples(2), zlib.crc32(first))
    stream = io.BytesIO(b"\x03\x09\x00" + first + second)
    decoder = MessageDecoder(stream)
    with caplog.at_level(logging.WARNING):
        payload = decoder.read()
    assert parse_message(payload).header == h1
    assert "invalid cobs encoding" in caplog.text
    with pytest.raises(EOFError):
        decoder.read()


def test_decoder_crc_mismatch(caplog):
    first = encode_frame(_header(message_id=1), _samples(1), 0)
    second = encode_frame(_header(message_id=2), _samples(2), zlib.crc32(first) ^ 1)
    decoder = MessageDecoder(io.BytesIO(first + second))
    with caplog.at_level(logging.WARNING):
        with pytest.raises(EOFError):
            decoder.read()
    assert "CRC does not match" in caplog.text


def test_decoder_iterates_chain():
    headers = [_header(message_id=i) for i in range(4)]
    frames = []
    crc = 0
    for i, header in enumerate(headers):
        frame = encode_frame(header, _samples(i), crc)
        crc = zlib.crc32(frame)
        frames.append(frame)
    decoder = MessageDecoder(io.BytesIO(b"".join(frames)))
    decoded = [parse_message(p).header for p in decoder]
    assert decoded == headers[:-1]


def test_encode_rejects_bad_input():
    with pytest.raises(ValueError):
        encode_frame(_header(), _samples()[:30], 0)
    with pytest.raises(ValueError):
        encode_frame(_header(), [(0x1000, 0)] * 31, 0)
    with pytest.raises(ValueError):
        encode_frame(_header(message_id=1 << 32), _samples(), 0)