"""
Signal conditioning for the ScolioScan inclinometer.

Turns raw accelerometer samples into a stable tilt angle:
low-pass the gravity vector, take the in-plane angle, despike with a
median of 3, reject single-sample jumps, and subtract the zero offset.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional, Tuple

from . import config
from .calibration import load_zero_offset, save_zero_offset
from .smoother import DisplaySmoother

logger = logging.getLogger(__name__)


@dataclass
class SensorSample:
    """Single accelerometer sample."""
    x: float            # m/s²
    y: float            # m/s²
    z: float            # m/s²
    timestamp: float    # seconds, monotonic


@dataclass
class FilterState:
    ax: float = 0.0
    ay: float = 0.0
    az: float = 0.0
    initialized: bool = False
    history: Deque[float] = field(default_factory=lambda: deque(maxlen=config.HISTORY_SIZE))
    last_accepted: float = 0.0
    zero_offset: float = 0.0


def gravity_angle(ax: float, ay: float) -> float:
    """
    In-plane angle of the gravity vector in degrees.

    The (x, y) pair is normalized with the norm floored at 1e-6, so a
    degenerate vector still yields a finite angle.
    """
    norm = max(config.NORM_FLOOR, math.sqrt(ax * ax + ay * ay))
    nx = ax / norm
    ny = ay / norm
    return math.atan2(ny, nx) * 180.0 / math.pi


class SignalConditioner:
    """
    Accelerometer-to-angle conditioning chain.

    Steps per sample:
        1. Gravity low-pass: filtered = alpha * filtered + (1 - alpha) * raw
        2. Angle: atan2 of the normalized filtered (x, y)
        3. Median of the last 3 raw angles
        4. Outlier rejection: a median more than 20° from the last accepted
           one is remembered but not emitted
        5. Subtract the zero offset

    Usage:
        smoother = DisplaySmoother()
        conditioner = SignalConditioner(smoother=smoother, store=store)
        angle = conditioner.ingest(SensorSample(ax, ay, az, t))
        if angle is not None:
            target = angle

        conditioner.calibrate()   # current pose becomes 0°
    """

    def __init__(
        self,
        alpha: float = config.GRAV_ALPHA,
        jump_max_deg: float = config.ACC_JUMP_MAX_DEG,
        smoother: Optional[DisplaySmoother] = None,
        store=None,
    ):
        """
        Initialize the conditioner.

        Args:
            alpha: Gravity low-pass factor (0-1). Larger = slower response,
                   more noise rejection.
            jump_max_deg: Largest accepted change between consecutive medians
            smoother: Display smoother reset and frozen on calibration
            store: Zero-offset store with load()/save(); offset read at startup
        """
        self.alpha = alpha
        self.jump_max_deg = jump_max_deg
        self.smoother = smoother
        self.store = store

        self.state = FilterState()
        self.state.zero_offset = load_zero_offset(store)

        # Diagnostics
        self.rejected_outliers = 0
        self.rejected_samples = 0

    def ingest(self, sample: SensorSample) -> Optional[float]:
        """
        Feed one accelerometer sample.

        Args:
            sample: Raw acceleration sample

        Returns:
            Conditioned angle in degrees, or None when the sample was
            malformed or the median jumped past the outlier threshold.
        """
        if not (math.isfinite(sample.x) and math.isfinite(sample.y) and math.isfinite(sample.z)):
            self.rejected_samples += 1
            logger.debug("Dropped non-finite sample at t=%s", sample.timestamp)
            return None

        s = self.state
        if not s.initialized:
            s.ax, s.ay, s.az = sample.x, sample.y, sample.z
            s.initialized = True
        else:
            a = self.alpha
            s.ax = a * s.ax + (1 - a) * sample.x
            s.ay = a * s.ay + (1 - a) * sample.y
            s.az = a * s.az + (1 - a) * sample.z

        raw = gravity_angle(s.ax, s.ay)
        candidate = self._push_and_median(raw)

        if abs(candidate - s.last_accepted) > self.jump_max_deg:
            s.last_accepted = candidate
            self.rejected_outliers += 1
            return None

        s.last_accepted = candidate
        return candidate - s.zero_offset

    def _push_and_median(self, value: float) -> float:
        history = self.state.history
        history.append(value)
        ordered = sorted(history)
        return ordered[len(ordered) // 2]

    def current_raw_angle(self) -> float:
        """Angle of the current filtered gravity vector, before offset and median."""
        return gravity_angle(self.state.ax, self.state.ay)

    def calibrate(self) -> float:
        """
        Make the current orientation read as 0°.

        Sets the zero offset to the current raw angle, primes the median
        buffer with it so the output does not jump, persists the offset,
        and resets + briefly freezes the coupled display smoother.

        Returns:
            The new zero offset (degrees)
        """
        s = self.state
        if not s.initialized:
            logger.warning("Calibrating before any accelerometer sample was received")

        raw = self.current_raw_angle()
        s.zero_offset = raw
        s.history.clear()
        s.history.extend((raw, raw, raw))
        s.last_accepted = raw

        save_zero_offset(self.store, raw)

        if self.smoother is not None:
            self.smoother.reset()
            self.smoother.freeze(config.CALIBRATION_FREEZE_SEC)

        logger.info("Zero offset calibrated to %.2f°", raw)
        return raw

    def get_zero_offset(self) -> float:
        return self.state.zero_offset

    def get_gravity_vector(self) -> Tuple[float, float, float]:
        """Return the last low-passed gravity vector."""
        return (self.state.ax, self.state.ay, self.state.az)

    def reset(self):
        """Clear filter state and history; the zero offset is kept."""
        zero_offset = self.state.zero_offset
        self.state = FilterState(zero_offset=zero_offset)
        self.rejected_outliers = 0
        self.rejected_samples = 0


if __name__ == "__main__":
    print("Testing SignalConditioner:")

    conditioner = SignalConditioner()

    print("\n1. Device tilted 10° in-plane:")
    g = 9.81
    ax, ay = g * math.cos(math.radians(10.0)), g * math.sin(math.radians(10.0))
    for i in range(20):
        angle = conditioner.ingest(SensorSample(ax, ay, 0.0, i * 0.02))
    print(f"   Angle: {angle:.2f}° (expected: ≈10.0)")

    print("\n2. Calibrate, hold still:")
    conditioner.calibrate()
    for i in range(3):
        angle = conditioner.ingest(SensorSample(ax, ay, 0.0, 1.0 + i * 0.02))
    print(f"   Angle: {angle:.2f}° (expected: 0.0)")

    print("\n3. Single spike:")
    spike = conditioner.ingest(SensorSample(-ax, ay, 0.0, 2.0))
    print(f"   Spike output: {spike} (expected: None or ≈0)")
