"""Pseudo-random phase modulation (chip) sequence of the DCF77 signal."""

from __future__ import annotations

CHIP_COUNT = 512


def _generate_sequence() -> tuple[bool, ...]:
    """Run the 9-bit LFSR (taps 5 and 9) that produces the chip sequence."""
    register = 1
    chips = []
    for _ in range(CHIP_COUNT):
        value = bool(register & 0x10) ^ bool(register & 0x100)
        register = ((register << 1) | value) & 0xFFFF
        chips.append(value)
    return tuple(chips)


PZF: tuple[bool, ...] = _generate_sequence()

# unit phasors for a phase shift of +15.6 and -15.6 degrees
SHIFT_FORWARD = complex(0.9631625667976582, 0.2689198206152657)
SHIFT_BACKWARDS = complex(0.9631625667976582, -0.2689198206152657)


def phase_shift_one_bit(bit: bool) -> complex:
    """Phasor that removes the modulation of a chip while a one bit is sent."""
    return SHIFT_FORWARD if bit else SHIFT_BACKWARDS


def phase_shift_zero_bit(bit: bool) -> complex:
    """Phasor that removes the modulation of a chip while a zero bit is sent."""
    return SHIFT_BACKWARDS if bit else SHIFT_FORWARD