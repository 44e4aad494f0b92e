"""
Display smoothing for the ScolioScan inclinometer.

Drives the displayed angle toward the conditioned target with a critically
damped spring so the needle moves without jitter or overshoot, and tracks
the running peak absolute angle for the current session.
"""

import math
from dataclasses import dataclass
from typing import Callable

from . import config
from .timing import monotonic


@dataclass
class SpringState:
    displayed: float = 0.0      # degrees, within [-30, 30]
    velocity: float = 0.0       # degrees / second
    peak: float = 0.0           # degrees, within [0, 30]
    freeze_until: float = 0.0   # monotonic seconds


def clamp(v, lo, hi):
    return lo if v < lo else hi if v > hi else v


class DisplaySmoother:
    """
    Critically damped second-order spring for the displayed angle.

    Each tick the spring pulls the displayed value toward the target:
        accel = wn² * (target - displayed) - c * velocity
    with c = 2 * wn (critical damping, no overshoot). Small targets snap to
    zero, velocity and position are clamped, and a short freeze after
    calibration pins the display at 0°.

    Usage:
        smoother = DisplaySmoother()
        displayed = smoother.tick(target_angle, dt)
        peak = smoother.state.peak
    """

    def __init__(
        self,
        wn: float = config.WN,
        damping: float = config.C,
        max_velocity: float = config.MAX_VEL_DEG_PER_SEC,
        limit: float = config.ANGLE_LIMIT_DEG,
        snap_zero: float = config.SNAP_ZERO_DEG,
        clock: Callable[[], float] = monotonic,
    ):
        """
        Initialize the spring.

        Args:
            wn: Natural frequency (rad/s). Higher = faster response.
            damping: Damping coefficient. 2 * wn is critical damping.
            max_velocity: Velocity clamp in degrees/second
            limit: Displayed angle is clamped to [-limit, limit]
            snap_zero: Targets with |target| below this read as exactly 0°
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.wn = wn
        self.damping = damping
        self.max_velocity = max_velocity
        self.limit = limit
        self.snap_zero = snap_zero
        self._clock = clock

        self.state = SpringState()

    def tick(self, target: float, dt: float = config.NOMINAL_DT) -> float:
        """
        Advance the spring by one frame.

        Args:
            target: Conditioned target angle (degrees)
            dt: Seconds since the previous tick. Non-positive, non-finite
                or > 0.1 s values are replaced by the nominal 16 ms.

        Returns:
            Displayed angle in degrees
        """
        s = self.state

        if not math.isfinite(dt) or dt <= 0 or dt > config.MAX_DT:
            dt = config.NOMINAL_DT

        if self.is_frozen():
            s.displayed = 0.0
            s.velocity = 0.0
            return s.displayed

        if not math.isfinite(target):
            target = s.displayed
        target = clamp(target, -self.limit, self.limit)
        if abs(target) < self.snap_zero:
            target = 0.0

        err = target - s.displayed
        accel = (self.wn * self.wn) * err - self.damping * s.velocity
        s.velocity = clamp(s.velocity + accel * dt, -self.max_velocity, self.max_velocity)
        s.displayed = clamp(s.displayed + s.velocity * dt, -self.limit, self.limit)

        # Settled: land exactly on the target instead of creeping toward it
        if abs(target - s.displayed) < config.REST_EPSILON and abs(s.velocity) < config.REST_EPSILON:
            s.displayed = target
            s.velocity = 0.0

        s.peak = min(max(s.peak, abs(s.displayed)), self.limit)
        return s.displayed

    def freeze(self, duration: float = config.CALIBRATION_FREEZE_SEC):
        """Pin the display at 0° for `duration` seconds from now."""
        self.state.freeze_until = self._clock() + duration

    def is_frozen(self) -> bool:
        return self._clock() < self.state.freeze_until

    def reset(self):
        """Clear displayed angle, velocity and peak (keeps any freeze)."""
        self.state.displayed = 0.0
        self.state.velocity = 0.0
        self.state.peak = 0.0

    def get_displayed(self) -> float:
        return self.state.displayed

    def get_peak(self) -> float:
        return self.state.peak


if __name__ == "__main__":
    print("Testing DisplaySmoother:")

    smoother = DisplaySmoother()

    print("\n1. Step 0° -> 12°:")
    for i in range(120):
        shown = smoother.tick(12.0, 0.016)
        if i % 20 == 0:
            print(f"   tick {i:3d}: displayed={shown:7.3f}  velocity={smoother.state.velocity:7.3f}")
    print(f"   Peak: {smoother.get_peak():.2f}° (expected: <= 12.0)")

    print("\n2. Target 0.2° (inside deadband):")
    for i in range(600):
        shown = smoother.tick(0.2, 0.016)
    print(f"   Displayed: {shown!r} (expected: 0.0)")
