"""Wire format of the I/Q sample frames sent by the ADC board.

A frame is COBS encoded and terminated by a zero byte. Each frame carries
the CRC-32 of the frame sent before it, so a payload is only accepted once
the following frame has confirmed it.
"""

from __future__ import annotations

import enum
import logging
import struct
import zlib
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import BinaryIO

_log = logging.getLogger(__name__)

SAMPLES_PER_MESSAGE = 31

_HEADER = struct.Struct("<IHH3sBB")
_CRC = struct.Struct("<I")
_SAMPLE_SIZE = 3
PAYLOAD_SIZE = _HEADER.size + SAMPLES_PER_MESSAGE * _SAMPLE_SIZE
# cobs start byte + crc + payload + terminating zero
FRAME_SIZE = 1 + _CRC.size + PAYLOAD_SIZE + 1

_READ_CHUNK = 4096


class ProtocolError(Exception):
    """A frame or message could not be decoded."""


class Flag(enum.IntFlag):
    """Status flags of a message."""

    FIFO_OVERRUN_NOW = 1 << 0
    FIFO_OVERRUN_STICKY = 1 << 1


def _pack_u12x2(pair: tuple[int, int]) -> bytes:
    high, low = pair
    if not (0 <= high <= 0xFFF and 0 <= low <= 0xFFF):
        raise ValueError(f"12 bit values out of range: {pair}")
    return ((high << 12) | low).to_bytes(3, "little")


def _unpack_u12x2(raw: bytes) -> tuple[int, int]:
    value = int.from_bytes(raw, "little")
    return value >> 12, value & 0xFFF


@dataclass(frozen=True)
class MessageHeader:
    """Metadata sent in front of the samples of a message."""

    #: 20 bit seconds counter and 12 bit subsecond counter (0..2500)
    message_id: int
    #: low-pass filtered raw value, 12.4 fixed point
    average: int
    #: sum of absolute deviations from the average, shifted right by 4
    amplitude: int
    #: minimum and maximum raw value in this period
    min_max: tuple[int, int]
    flags: Flag
    #: number of bits the 12 bit samples were shifted right by
    sample_shift: int

    def to_bytes(self) -> bytes:
        try:
            return _HEADER.pack(
                self.message_id,
                self.average,
                self.amplitude,
                _pack_u12x2(self.min_max),
                int(self.flags),
                self.sample_shift,
            )
        except struct.error as err:
            raise ValueError(f"header field out of range: {err}") from err

    @classmethod
    def from_bytes(cls, data: bytes) -> MessageHeader:
        message_id, average, amplitude, min_max, flags, shift = _HEADER.unpack(data)
        return cls(
            message_id=message_id,
            average=average,
            amplitude=amplitude,
            min_max=_unpack_u12x2(min_max),
            flags=Flag(flags),
            sample_shift=shift,
        )


@dataclass(frozen=True)
class Message:
    """A header with 31 raw 12 bit I/Q sample pairs."""

    header: MessageHeader
    samples: tuple[tuple[int, int], ...]

    @property
    def message_id(self) -> int:
        return self.header.message_id

    @property
    def average(self) -> int:
        return self.header.average

    @property
    def amplitude(self) -> int:
        return self.header.amplitude

    @property
    def min_max(self) -> tuple[int, int]:
        return self.header.min_max

    @property
    def flags(self) -> Flag:
        return self.header.flags

    @property
    def sample_shift(self) -> int:
        return self.header.sample_shift


def parse_message(data: bytes) -> Message:
    """Parse a decoded payload into a :class:`Message`."""
    data = bytes(data)
    if len(data) < PAYLOAD_SIZE:
        raise ProtocolError("message too short")
    if len(data) > PAYLOAD_SIZE:
        raise ProtocolError(f"message too large: {len(data) - PAYLOAD_SIZE} bytes")
    header = MessageHeader.from_bytes(data[: _HEADER.size])
    samples = tuple(
        _unpack_u12x2(data[offset : offset + _SAMPLE_SIZE])
        for offset in range(_HEADER.size, PAYLOAD_SIZE, _SAMPLE_SIZE)
    )
    return Message(header, samples)


def encode_frame(
    header: MessageHeader, samples: Iterable[tuple[int, int]], crc: int
) -> bytes:
    """Build a COBS encoded, zero terminated frame.

    ``crc`` is the CRC-32 of the previously sent frame.
    """
    samples = list(samples)
    if len(samples) != SAMPLES_PER_MESSAGE:
        raise ValueError(
            f"expected {SAMPLES_PER_MESSAGE} samples, got {len(samples)}"
        )
    try:
        crc_bytes = _CRC.pack(crc)
    except struct.error as err:
        raise ValueError(f"crc out of range: {err}") from err

    frame = bytearray(b"\0")
    frame += crc_bytes
    frame += header.to_bytes()
    for pair in samples:
        frame += _pack_u12x2(pair)
    frame += b"\0"

    start = 0
    while start < len(frame) - 1:
        next_zero = frame.index(0, start + 1)
        frame[start] = next_zero - start
        start = next_zero
    return bytes(frame)


class MessageDecoder:
    """Reads frames from a binary stream and yields verified payloads."""

    def __init__(self, reader: BinaryIO) -> None:
        self._reader = reader
        self._buffer = bytearray()
        self._prev_message = b""
        self._prev_crc = 0

    def read(self) -> bytes:
        """Return the next payload whose CRC was confirmed.

        Frames that fail to decode are logged and skipped. Raises
        :class:`EOFError` when the stream ends.
        """
        while True:
            frame = self._read_frame()
            try:
                return self._accept(frame)
            except ProtocolError as err:
                _log.warning("decode message: %s", err)

    def __iter__(self) -> Iterator[bytes]:
        while True:
            try:
                yield self.read()
            except EOFError:
                return

    def _read_chunk(self) -> bytes:
        read1 = getattr(self._reader, "read1", None)
        if read1 is not None:
            return read1(_READ_CHUNK)
        return self._reader.read(1)

    def _read_frame(self) -> bytes:
        while True:
            end = self._buffer.find(0)
            if end >= 0:
                frame = bytes(self._buffer[: end + 1])
                del self._buffer[: end + 1]
                return frame
            chunk = self._read_chunk()
            if not chunk:
                if self._buffer:
                    frame = bytes(self._buffer)
                    self._buffer.clear()
                    return frame
                raise EOFError("end of stream")
            self._buffer += chunk

    def _accept(self, frame: bytes) -> bytes:
        if len(frame) < 2:
            raise ProtocolError("frame too short")

        frame_crc = zlib.crc32(frame)
        message = bytearray(frame[:-1])

        pos = 0
        while pos < len(message):
            step = message[pos]
            message[pos] = 0
            if step == 0 or pos + step > len(message):
                raise ProtocolError("invalid cobs encoding")
            pos += step

        if len(message) < 1 + _CRC.size:
            raise ProtocolError("message too short")
        (crc_field,) = _CRC.unpack_from(message, 1)

        previous, self._prev_message = self._prev_message, bytes(message)
        expected_crc, self._prev_crc = self._prev_crc, frame_crc

        if expected_crc != crc_field:
            raise ProtocolError("CRC does not match")
        if len(previous) < 1 + _CRC.size:
            raise ProtocolError("no previous message")
        return previous[1 + _CRC.size :]