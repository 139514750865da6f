# dcfphase

`dcfphase` receives in-phase/quadrature (I/Q) samples of the 77.5 kHz DCF77
carrier from an ADC front end over a serial line and decodes the
phase-modulated pseudo-random chip sequence that the transmitter sends each
second. From the recovered bits it assembles the minute frame and prints the
time and date.

It uses only the Python standard library (Python 3.10 or later).

## How it works

- **Framing** (`dcfphase.protocol`) – each frame is COBS encoded and
  terminated by a zero byte. Every frame carries the CRC-32 of the frame sent
  before it, so a payload is only handed out once the following frame has
  confirmed it; corrupted frames are logged and skipped.
- **Messages** – a payload holds a `MessageHeader` (message id, filtered
  average, amplitude, min/max raw value, `Flag` status flags, sample shift)
  and 31 I/Q samples packed as pairs of 12-bit numbers. The message id counts
  seconds (20 bits) and 1/2500 s steps (12 bits); 31 samples per step give
  77 500 samples per second.
- **Timestamps** (`dcfphase.sampletime.SampleTime`) – expands message ids
  across the 20-bit wrap-around, computes gaps between messages and converts
  them to seconds or sample counts.
- **Carrier tracking** (`dcfphase.kalman.KalmanFilter`) – a two-state Kalman
  filter follows the carrier phase and its drift rate.
- **Phase decoding** (`dcfphase.decoder`) – the 512-chip sequence
  (`dcfphase.pzf.PZF`) is correlated against the phase-corrected samples,
  first coarsely over groups of 60 samples, then over single samples, to find
  where the sequence starts and whether it carries a one or a zero.
- **Time decoding** – when the last ten bits received are all ones, the 60
  collected bits are decoded by `decode_time` into a `DecodedTime` (hour,
  minute, weekday, day, month, year).

## Installation

```
pip install .
```

## Running

```
dcfphase [DEVICE] [-q]
```

`DEVICE` is the serial device the ADC board is attached to; it defaults to
`/dev/ttyAMA0`. The stream is read until it ends.

- Decoded times are printed on standard output, one line per detected minute,
  e.g. `14:07 Tue 05-03-24`.
- Diagnostics go to standard error: once per second the tracked phase, phase
  rate, uncertainty and rate change; once per decoded bit the best alignment,
  the bit, its phase error and the collected bit sequence; warnings for frames
  that failed to decode or parse.
- `-q`/`--quiet` suppresses the per-second and per-bit diagnostics and keeps
  only warnings.

The command exits with status 1 if the device cannot be opened or a message
id lies before the expected time, and with 130 when interrupted.

## Using it as a library

Building frames and reading them back:

```python
import io
import zlib

from dcfphase.protocol import Flag, MessageDecoder, MessageHeader, encode_frame, parse_message

header = MessageHeader(
    message_id=(5 << 12) | 7,
    average=0,
    amplitude=0,
    min_max=(0, 4095),
    flags=Flag(0),
    sample_shift=3,
)
samples = [(1, 2)] * 31
first = encode_frame(header, samples, crc=0)
second = encode_frame(header, samples, crc=zlib.crc32(first))

frames = MessageDecoder(io.BytesIO(first + second))
message = parse_message(frames.read())   # payload of `first`, confirmed by `second`
print(message.message_id, message.sample_shift, len(message.samples))
```

`MessageDecoder.read` raises `EOFError` at the end of the stream; iterating
over a `MessageDecoder` yields payloads until then. `parse_message` raises
`ProtocolError` for payloads of the wrong size.

Feeding samples to the decoder:

```python
from dcfphase.cli import measurement_from_sample
from dcfphase.decoder import Decoder

decoder = Decoder(on_time=print)
for sample in message.samples:
    decoder.sample(measurement_from_sample(sample, message.sample_shift))
```

`measurement_from_sample` sign-extends each 12-bit value and shifts it back
by the message's sample shift. Gaps in the message ids are bridged with
`Decoder.missing_samples`, which takes a `SampleTime` duration.
`dcfphase.cli.run(stream, decoder)` does all of this for a binary stream and
returns the number of messages processed. `PhaseDecoder.sample` can also be
used on its own; it returns the decoded bit each time a second completes.

## What it does not do

The package only consumes the frame stream. It does not configure or program
the ADC board that produces the I/Q samples, does not open or set up the
serial port beyond opening the device file for reading, and does not set the
system clock from the decoded time.

## Tests

```
pip install .[test]
pytest
```