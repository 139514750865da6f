"""Command line receiver: reads sample frames from a device and decodes them."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import BinaryIO, Protocol

from .decoder import DecodedTime, Decoder
from .protocol import MessageDecoder, ProtocolError, parse_message
from .sampletime import SampleTime

_log = logging.getLogger(__name__)

DEFAULT_DEVICE = "/dev/ttyAMA0"


class _SampleSink(Protocol):
    def sample(self, measurement: complex) -> None: ...

    def missing_samples(self, duration: SampleTime) -> None: ...


def _sign_extend_12(value: int) -> int:
    value &= 0xFFF
    return value - 0x1000 if value & 0x800 else value


def measurement_from_sample(sample: tuple[int, int], shift: int) -> complex:
    """Restore a transmitted 12 bit I/Q pair to its full-scale value."""
    i_data, q_data = sample
    return complex(_sign_extend_12(i_data) << shift, _sign_extend_12(q_data) << shift)


def run(stream: BinaryIO, decoder: _SampleSink) -> int:
    """Feed all messages from ``stream`` into ``decoder``.

    Returns the number of messages processed. Raises :class:`ValueError`
    if a message id lies before the expected time.
    """
    messages = MessageDecoder(stream)
    expected_next = SampleTime()
    processed = 0

    for payload in messages:
        try:
            message = parse_message(payload)
        except ProtocolError as err:
            _log.warning("parse message: %s", err)
            continue

        sample_time = expected_next.parse_message_id(message.message_id)

        if not expected_next.is_zero():
            skipped = sample_time.checked_sub(expected_next)
            if skipped is None:
                raise ValueError(
                    f"message time {sample_time} is before expected {expected_next}"
                )
            if not skipped.is_zero():
                decoder.missing_samples(skipped)

        for sample in message.samples:
            decoder.sample(measurement_from_sample(sample, message.sample_shift))

        expected_next = sample_time.next_sample()
        processed += 1
    return processed


def _print_time(time: DecodedTime) -> None:
    print(time, flush=True)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Decode the DCF77 phase modulation from I/Q sample frames."
    )
    parser.add_argument(
        "device", nargs="?", default=DEFAULT_DEVICE, help="serial device to read"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="only print decoded times"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )

    try:
        with open(args.device, "rb") as stream:
            run(stream, Decoder(on_time=_print_time))
    except OSError as err:
        print(f"open device: {err}", file=sys.stderr)
        return 1
    except ValueError as err:
        print(f"error: {err}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())