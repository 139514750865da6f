"""Sample timestamps: whole seconds plus a 2500 Hz subsecond counter."""

from __future__ import annotations

from dataclasses import dataclass

SUBSECONDS_PER_SECOND = 2500
SAMPLES_PER_SUBSECOND = 31
SAMPLES_PER_SECOND = SUBSECONDS_PER_SECOND * SAMPLES_PER_SUBSECOND

_ID_SECONDS_MASK = 0xF_FFFF
_ID_SECONDS_WRAP = 0x10_0000
_ID_SECONDS_HALF = 0x8_0000


@dataclass(frozen=True, order=True)
class SampleTime:
    """A point in time measured in seconds and 1/2500 s ticks."""

    seconds: int = 0
    subsecond: int = 0

    def parse_message_id(self, message_id: int) -> SampleTime:
        """Expand a 20+12 bit message id relative to this time."""
        seconds = (self.seconds & ~_ID_SECONDS_MASK) | (message_id >> 12)
        subsecond = message_id & 0xFFF
        if seconds + _ID_SECONDS_HALF < self.seconds:
            seconds += _ID_SECONDS_WRAP
        return SampleTime(seconds, subsecond)

    def as_seconds(self) -> float:
        return self.seconds + self.subsecond / SUBSECONDS_PER_SECOND

    def checked_sub(self, other: SampleTime) -> SampleTime | None:
        """Difference of two times, or None if it would be negative."""
        seconds = self.seconds - other.seconds
        if seconds < 0:
            return None
        if self.subsecond >= other.subsecond:
            return SampleTime(seconds, self.subsecond - other.subsecond)
        if seconds == 0:
            return None
        return SampleTime(
            seconds - 1, self.subsecond + SUBSECONDS_PER_SECOND - other.subsecond
        )

    def __sub__(self, other: SampleTime) -> SampleTime:
        if not isinstance(other, SampleTime):
            return NotImplemented
        result = self.checked_sub(other)
        if result is None:
            raise ValueError(f"{other} is later than {self}")
        return result

    def next_sample(self) -> SampleTime:
        """The time of the following message."""
        subsecond = self.subsecond + 1
        if subsecond == SUBSECONDS_PER_SECOND:
            return SampleTime(self.seconds + 1, 0)
        return SampleTime(self.seconds, subsecond)

    def is_zero(self) -> bool:
        return self.seconds == 0 and self.subsecond == 0

    def sample_index(self) -> int:
        """Number of I/Q samples this time corresponds to."""
        return (
            self.seconds * SAMPLES_PER_SECOND
            + self.subsecond * SAMPLES_PER_SUBSECOND
        )