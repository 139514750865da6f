import cmath
import logging
import math

import pytest

from dcfphase.decoder import (
    CYCLE_SAMPLES,
    Decoder,
    DecodedTime,
    PhaseDecoder,
    decode_time,
)
from dcfphase.pzf import PZF
from dcfphase.sampletime import SampleTime


def _time_bits(minute, hour, day_units, day_tens_field, weekday, month, year):
    return (
        ((minute % 10) << 21)
        | ((minute // 10) << 25)
        | ((hour % 10) << 29)
        | ((hour // 10) << 33)
        | (day_units << 36)
        | (day_tens_field << 40)
        | (weekday << 42)
        | ((month % 10) << 45)
        | ((month // 10) << 49)
        | ((year % 10) << 50)
        | ((year // 10) << 54)
    )


def test_decode_time_fields():
    bits = _time_bits(37, 14, 5, 2, 3, 11, 24)
    time = decode_time(bits)
    assert time == DecodedTime(minute=37, hour=14, day=25, weekday=3, month=11, year=24)
    assert str(time) == "14:37 Wed 25-11-24"


def test_decode_time_unknown_weekday():
    time = decode_time(_time_bits(5, 3, 1, 0, 0, 1, 9))
    assert time.weekday_name == "---"
    assert str(time) == "03:05 --- 01-01-09"


@pytest.mark.parametrize("weekday, name", [(1, "Mon"), (7, "Sun")])
def test_weekday_names(weekday, name):
    assert decode_time(weekday << 42).weekday_name == name


def test_phase_decoder_no_bit_before_cycle_end():
    decoder = PhaseDecoder()
    results = {decoder.sample(1 + 0j) for _ in range(1000)}
    assert results == {None}
    assert decoder.sample_counter == 1000


def test_phase_decoder_unmodulated_signal_gives_one():
    decoder = PhaseDecoder()
    results = [decoder.sample(1 + 0j) for _ in range(CYCLE_SAMPLES)]
    assert results[-1] is True
    assert all(r is None for r in results[:-1])
    assert decoder.bits == 1 << 59
    assert decoder.sample_counter == CYCLE_SAMPLES - 77500


def test_phase_decoder_detects_zero_bit():
    forward = cmath.rect(1.0, math.radians(15.6))
    backwards = cmath.rect(1.0, math.radians(-15.6))
    decoder = PhaseDecoder()
    result = None
    for n in range(CYCLE_SAMPLES):
        chip = n // 120
        if chip < len(PZF):
            value = forward if PZF[chip] else backwards
        else:
            value = 1 + 0j
        result = decoder.sample(value)
    assert result is False
    assert decoder.bits == 0


def test_decoder_tracks_constant_phase():
    decoder = Decoder()
    for _ in range(20):
        decoder.sample(cmath.rect(100.0, 0.5))
    assert abs(decoder.kf.phase - 0.5) < 0.05
    assert decoder.phase_decoder.sample_counter == 20
    assert decoder.sample_counter == 20


def test_missing_samples_advance_counters():
    decoder = Decoder()
    before = decoder.kf.uncertainty[1][1]
    decoder.missing_samples(SampleTime(0, 2))
    assert decoder.phase_decoder.sample_counter == SampleTime(0, 2).sample_index()
    assert decoder.kf.uncertainty[1][1] > before


def test_missing_second_reports_status(caplog):
    decoder = Decoder()
    with caplog.at_level(logging.INFO, logger="dcfphase.decoder"):
        decoder.missing_samples(SampleTime(1, 0))
    assert decoder.sample_counter == 0
    assert any("kalman filter" in r.getMessage() for r in caplog.records)