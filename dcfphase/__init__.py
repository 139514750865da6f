"""Decoder for the phase-modulated DCF77 time signal from streamed I/Q sample frames."""

__version__ = "0.1.0"