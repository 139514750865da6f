"""Two-state Kalman filter tracking carrier phase and phase drift."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass

Matrix = tuple[tuple[float, float], tuple[float, float]]

_PI_SQUARED = math.pi * math.pi
_TWO_PI = 2.0 * math.pi


@dataclass
class KalmanFilter:
    """Tracks phase offset (rad) and phase offset rate (rad/s)."""

    phase: float = 0.0
    rate: float = 0.0
    uncertainty: Matrix = ((_PI_SQUARED, 0.0), (0.0, _PI_SQUARED))
    time_wander: float = 1e-8

    def copy(self) -> KalmanFilter:
        """Return an independent copy of the filter."""
        return dataclasses.replace(self)

    def advance_time(self, duration: float) -> None:
        """Predict the state ``duration`` seconds ahead."""
        d = duration
        w = self.time_wander
        (p11, p12), (p21, p22) = self.uncertainty

        self.phase += d * self.rate
        self.uncertainty = (
            (
                p11 + d * p21 + d * (p12 + d * p22) + w * d * d * d / 3.0,
                p12 + d * p22 + w * d * d / 2.0,
            ),
            (
                p21 + d * p22 + w * d * d / 2.0,
                p22 + w * d,
            ),
        )

    def measurement(self, measurement: float, noise: float) -> None:
        """Fold in a phase measurement (rad) with the given variance."""
        difference = measurement - self.phase
        while difference < -math.pi:
            difference += _TWO_PI
        while difference > math.pi:
            difference -= _TWO_PI

        (p11, p12), (p21, p22) = self.uncertainty
        covariance = p11 + noise
        if covariance == 0.0:
            raise ValueError("innovation covariance is singular")

        gain_phase = p11 / covariance
        gain_rate = p21 / covariance

        self.phase += gain_phase * difference
        self.rate += gain_rate * difference
        self.uncertainty = (
            ((1.0 - gain_phase) * p11, (1.0 - gain_phase) * p12),
            (p21 - gain_rate * p11, p22 - gain_rate * p12),
        )