"""Phase tracking and phase-modulation decoding of the DCF77 carrier."""

from __future__ import annotations

import cmath
import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from itertools import accumulate

from .kalman import KalmanFilter
from .pzf import CHIP_COUNT, PZF, phase_shift_one_bit, phase_shift_zero_bit
from .sampletime import SAMPLES_PER_SECOND, SampleTime

_log = logging.getLogger(__name__)

NUM_RAW_SAMPLES = 1 << 18
GROUP_SIZE = 60
GROUPS_PER_SECOND = -(-SAMPLES_PER_SECOND // GROUP_SIZE)
#: start positions for one second plus a 512 chip sequence (2 groups per chip)
NUM_GROUPS = GROUPS_PER_SECOND + CHIP_COUNT * 2 - 1
CYCLE_SAMPLES = NUM_GROUPS * GROUP_SIZE
CHIP_SAMPLES = 2 * GROUP_SIZE
SEARCH_RANGE = GROUP_SIZE
MESSAGES_PER_SECOND = 1
MEASUREMENT_NOISE = (math.pi / 3.0) * (math.pi / 3.0)

_MINUTE_START = (1 << 10) - 1
_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_SHIFTS = tuple((phase_shift_one_bit(c), phase_shift_zero_bit(c)) for c in PZF)


@dataclass(frozen=True)
class DecodedTime:
    """Time of day and date decoded from a 60 bit minute frame."""

    minute: int
    hour: int
    day: int
    weekday: int
    month: int
    year: int

    @property
    def weekday_name(self) -> str:
        if 1 <= self.weekday <= len(_WEEKDAYS):
            return _WEEKDAYS[self.weekday - 1]
        return "---"

    def __str__(self) -> str:
        return (
            f"{self.hour:02}:{self.minute:02} {self.weekday_name} "
            f"{self.day:02}-{self.month:02}-{self.year:02}"
        )


def decode_time(bits: int) -> DecodedTime:
    """Extract the BCD time fields from a minute's bit sequence."""
    return DecodedTime(
        minute=((bits >> 21) & 0xF) + ((bits >> 25) & 7) * 10,
        hour=((bits >> 29) & 0xF) + ((bits >> 33) & 3) * 10,
        day=((bits >> 36) & 0xF) + ((bits >> 40) & 2) * 10,
        weekday=(bits >> 42) & 7,
        month=((bits >> 45) & 0xF) + ((bits >> 49) & 1) * 10,
        year=((bits >> 50) & 0xF) + ((bits >> 54) & 0xF) * 10,
    )


def _score(sums: Sequence[complex]) -> tuple[float, float]:
    """Squared phase errors for the one and zero bit hypotheses."""
    one = 0.0
    zero = 0.0
    for value, (shift_one, shift_zero) in zip(sums, _SHIFTS):
        diff = cmath.phase(value * shift_one)
        one += diff * diff
        diff = cmath.phase(value * shift_zero)
        zero += diff * diff
    return one, zero


class _Best:
    """Running minimum over candidate alignments."""

    def __init__(self) -> None:
        self.error = math.inf
        self.index = 0
        self.bit = False

    def update(self, index: int, one: float, zero: float) -> None:
        if one < self.error:
            self.error, self.index, self.bit = one, index, True
        if zero < self.error:
            self.error, self.index, self.bit = zero, index, False


class PhaseDecoder:
    """Correlates derotated samples with the chip sequence to recover bits."""

    def __init__(self, on_time: Callable[[DecodedTime], None] | None = None) -> None:
        self.raw_samples: list[complex] = [0j] * NUM_RAW_SAMPLES
        self.raw_index = 0
        self.current_groups: list[complex] = [0j] * NUM_GROUPS
        self.next_groups: list[complex] = [0j] * NUM_GROUPS
        self.sample_counter = 0
        self.bits = 0
        self.on_time = on_time

    def sample(self, phase_offset: complex) -> bool | None:
        """Add one sample; return the decoded bit when a second completes."""
        self.raw_samples[self.raw_index] = phase_offset
        self.raw_index = (self.raw_index + 1) % NUM_RAW_SAMPLES

        self.current_groups[self.sample_counter // GROUP_SIZE] += phase_offset
        if self.sample_counter >= SAMPLES_PER_SECOND:
            counter = self.sample_counter - SAMPLES_PER_SECOND
            self.next_groups[counter // GROUP_SIZE] += phase_offset

        self.sample_counter += 1
        if self.sample_counter != CYCLE_SAMPLES:
            return None
        return self._complete_second()

    def _coarse_search(self) -> int:
        groups = self.current_groups
        pairs = [a + b for a, b in zip(groups, groups[1:])]
        best = _Best()
        for i in range(GROUPS_PER_SECOND):
            best.update(i, *_score(pairs[i : i + 2 * CHIP_COUNT : 2]))
        return best.index * GROUP_SIZE

    def _fine_search(self, raw_offset: int) -> _Best:
        span = 2 * SEARCH_RANGE + CHIP_COUNT * CHIP_SAMPLES
        low = self.raw_index - (raw_offset + SEARCH_RANGE)
        window = (
            self.raw_samples[(low + t) % NUM_RAW_SAMPLES] for t in range(span)
        )
        prefix = list(accumulate(window, initial=0j))
        chip_starts = range(0, CHIP_COUNT * CHIP_SAMPLES, CHIP_SAMPLES)

        best = _Best()
        for i in range(raw_offset - SEARCH_RANGE, raw_offset + SEARCH_RANGE + 1):
            offset = raw_offset + SEARCH_RANGE - i
            sums = [
                prefix[offset + c + CHIP_SAMPLES] - prefix[offset + c]
                for c in chip_starts
            ]
            best.update(i, *_score(sums))
        return best

    def _complete_second(self) -> bool:
        first_index = self._coarse_search()
        best = self._fine_search(CYCLE_SAMPLES - first_index)

        error = math.degrees(math.sqrt(best.error))
        index = CYCLE_SAMPLES - best.index
        _log.info(
            "%d: %d %d %s %s",
            self.sample_counter,
            index,
            index - first_index,
            best.bit,
            error,
        )

        self.sample_counter -= SAMPLES_PER_SECOND
        self.current_groups = self.next_groups
        self.next_groups = [0j] * NUM_GROUPS

        self.bits >>= 1
        self.bits |= int(best.bit) << 59
        _log.info("%060b", self.bits)

        if self.bits & _MINUTE_START == _MINUTE_START:
            time = decode_time(self.bits)
            _log.info("MINUTE DETECTED: %060b %s", self.bits, time)
            if self.on_time is not None:
                self.on_time(time)
        return best.bit


class Decoder:
    """Tracks the carrier phase and feeds derotated samples to the bit decoder."""

    def __init__(self, on_time: Callable[[DecodedTime], None] | None = None) -> None:
        self.simple_phase = 0j
        self.kf = KalmanFilter()
        self.phase_decoder = PhaseDecoder(on_time)
        self.sample_counter = 0
        self.prev_rate = 0.0

    def missing_samples(self, duration: SampleTime) -> None:
        """Account for samples that were lost in transmission."""
        for _ in range(duration.sample_index()):
            self.phase_decoder.sample(0j)
            self._increment_sample_counter()
        # one step keeps rounding errors small
        self.kf.advance_time(duration.as_seconds())

    def sample(self, measurement: complex) -> None:
        """Process one I/Q sample."""
        self.simple_phase += measurement
        self.kf.measurement(cmath.phase(measurement), MEASUREMENT_NOISE)
        self.phase_decoder.sample(measurement * cmath.rect(1.0, -self.kf.phase))
        self._increment_sample_counter()
        self.kf.advance_time(1.0 / SAMPLES_PER_SECOND)

    def _increment_sample_counter(self) -> None:
        self.sample_counter += 1
        if self.sample_counter != SAMPLES_PER_SECOND // MESSAGES_PER_SECOND:
            return
        self.sample_counter = 0

        diff = math.degrees(self.prev_rate - self.kf.rate) % 360.0
        if diff > 180.0:
            diff -= 360.0
        diff *= MESSAGES_PER_SECOND

        (p11, _), (_, p22) = self.kf.uncertainty
        _log.info(
            "current phase angle: %7.3f°",
            math.degrees(cmath.phase(self.simple_phase)) % 360.0,
        )
        _log.info(
            "kalman filter:       %7.3f° %9.5f°/s",
            math.degrees(self.kf.phase) % 360.0,
            math.degrees(self.kf.rate),
        )
        _log.info(
            "uncertainty:         %7.5f° %9.5f°/s", math.sqrt(p11), math.sqrt(p22)
        )
        _log.info("acceleration:         %6.3f°/s^2", diff)

        self.simple_phase = 0j
        self.prev_rate = self.kf.rate