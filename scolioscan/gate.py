"""
Position gating for the guided-pose mode.

Decides per landmark frame whether the subject stands with their back to
the camera, inside the outer guide and outside the inner one, and runs the
hold timer that fires a single completion after 3 s of continuous success.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from . import config
from .pose import (
    GuideZone,
    LandmarkFrame,
    LEFT_SHOULDER,
    PoseEstimate,
    RIGHT_SHOULDER,
    estimate_curvature,
    transformed,
)
from .timing import monotonic_ms

logger = logging.getLogger(__name__)


class GatePhase(str, Enum):
    IDLE = "IDLE"
    HOLDING = "HOLDING"
    COMPLETED = "COMPLETED"


class GateReason(str, Enum):
    """Why the gate is unsatisfied, in reporting priority order."""
    NO_SUBJECT = "NO_SUBJECT"
    FACING_CAMERA = "FACING_CAMERA"
    OUT_OF_FRAME = "OUT_OF_FRAME"
    TOO_CLOSE = "TOO_CLOSE"


REASON_MESSAGES = {
    GateReason.NO_SUBJECT: "Step into view",
    GateReason.FACING_CAMERA: "Turn around so your back faces the camera",
    GateReason.OUT_OF_FRAME: "Move so your shoulders are inside the outer guide",
    GateReason.TOO_CLOSE: "Step back, your shoulders are inside the inner guide",
}


@dataclass(frozen=True)
class GuideCheck:
    """Result of the per-frame position checks."""
    shoulders_found: bool
    from_behind: bool
    shoulders_in_outer: bool
    shoulders_out_of_inner: bool

    @property
    def ok(self) -> bool:
        return self.shoulders_found and self.from_behind and self.shoulders_in_outer and self.shoulders_out_of_inner

    @property
    def reason(self) -> Optional[GateReason]:
        if self.ok:
            return None
        if not self.shoulders_found:
            return GateReason.NO_SUBJECT
        if not self.from_behind:
            return GateReason.FACING_CAMERA
        if not self.shoulders_in_outer:
            return GateReason.OUT_OF_FRAME
        if not self.shoulders_out_of_inner:
            return GateReason.TOO_CLOSE
        return GateReason.NO_SUBJECT


@dataclass(frozen=True)
class Unsatisfied:
    reason: GateReason


@dataclass(frozen=True)
class HoldingWithRemaining:
    remaining_seconds: int


@dataclass(frozen=True)
class Completed:
    result: PoseEstimate


GateEvent = Union[Unsatisfied, HoldingWithRemaining, Completed]


@dataclass
class GateState:
    phase: GatePhase = GatePhase.IDLE
    since_ms: Optional[float] = None
    last_reason: Optional[GateReason] = GateReason.NO_SUBJECT
    remaining_seconds: int = 0


@dataclass(frozen=True)
class GateStatus:
    phase: GatePhase
    remaining_seconds: int
    reason: Optional[GateReason]

    def to_dict(self) -> dict:
        return {
            "state": self.phase.value,
            "remaining_seconds": self.remaining_seconds,
            "reason": None if self.reason is None else self.reason.value,
            "message": None if self.reason is None else REASON_MESSAGES[self.reason],
        }


def check_guides(frame: Optional[LandmarkFrame], zone: GuideZone,
                 mirror: bool = False, behind_delta: float = config.BEHIND_DELTA) -> GuideCheck:
    """
    Run the orientation and framing checks on one frame.

    Seen from behind, the subject's left shoulder appears to the right of
    the right shoulder, so "from behind" means left.x - right.x > delta.
    """
    if frame is None:
        return GuideCheck(False, False, False, False)

    left = transformed(frame, LEFT_SHOULDER, mirror)
    right = transformed(frame, RIGHT_SHOULDER, mirror)
    if left is None or right is None:
        return GuideCheck(False, False, False, False)

    from_behind = (left[0] - right[0]) > behind_delta
    in_outer = zone.outer.contains_point(left) and zone.outer.contains_point(right)
    out_of_inner = not zone.inner.contains_point(left) and not zone.inner.contains_point(right)

    return GuideCheck(True, from_behind, in_outer, out_of_inner)


class PositionGate:
    """
    Hold-timer state machine over per-frame guide checks.

    States:
        IDLE      - waiting for a satisfied frame
        HOLDING   - satisfied since `since_ms`; any failure returns to IDLE
        COMPLETED - fired once; evaluate() is a no-op until reset()

    Usage:
        gate = PositionGate(GuideZone.from_bounds(config.OUTER_GUIDE, config.INNER_GUIDE))
        event = gate.evaluate(frame)
        if isinstance(event, Completed):
            submit(event.result)
    """

    def __init__(
        self,
        zone: GuideZone,
        hold_duration_ms: float = config.HOLD_DURATION_MS,
        mirror: bool = False,
        behind_delta: float = config.BEHIND_DELTA,
        clock_ms: Callable[[], float] = monotonic_ms,
    ):
        self.zone = zone
        self.hold_duration_ms = hold_duration_ms
        self.mirror = mirror
        self.behind_delta = behind_delta
        self._clock_ms = clock_ms

        self.state = GateState()
        self.last_check: Optional[GuideCheck] = None

    def evaluate(self, frame: Optional[LandmarkFrame], now_ms: Optional[float] = None) -> Optional[GateEvent]:
        """
        Advance the state machine with the latest frame.

        Args:
            frame: Latest landmark frame, or None if nothing has arrived
            now_ms: Monotonic time in ms (defaults to the gate clock)

        Returns:
            Unsatisfied, HoldingWithRemaining or Completed; None once the
            gate has completed and has not been reset.
        """
        s = self.state
        if s.phase == GatePhase.COMPLETED:
            return None

        if now_ms is None:
            now_ms = self._clock_ms()

        check = check_guides(frame, self.zone, self.mirror, self.behind_delta)
        self.last_check = check

        if not check.ok:
            if s.phase == GatePhase.HOLDING:
                logger.debug("Hold interrupted: %s", check.reason.value)
            s.phase = GatePhase.IDLE
            s.since_ms = None
            s.last_reason = check.reason
            s.remaining_seconds = 0
            return Unsatisfied(check.reason)

        s.last_reason = None

        if s.phase == GatePhase.IDLE:
            s.phase = GatePhase.HOLDING
            s.since_ms = now_ms
            s.remaining_seconds = int(math.ceil(self.hold_duration_ms / 1000.0))
            logger.debug("Hold started at %.0f ms", now_ms)
            return HoldingWithRemaining(s.remaining_seconds)

        elapsed = now_ms - s.since_ms
        if elapsed >= self.hold_duration_ms:
            result = estimate_curvature(frame, self.mirror)
            s.phase = GatePhase.COMPLETED
            s.remaining_seconds = 0
            logger.info("Hold completed after %.0f ms", elapsed)
            return Completed(result)

        s.remaining_seconds = max(0, int(math.ceil((self.hold_duration_ms - elapsed) / 1000.0)))
        return HoldingWithRemaining(s.remaining_seconds)

    def status(self) -> GateStatus:
        s = self.state
        return GateStatus(s.phase, s.remaining_seconds, s.last_reason)

    def is_completed(self) -> bool:
        return self.state.phase == GatePhase.COMPLETED

    def reset(self):
        """Return to IDLE for a fresh measurement."""
        self.state = GateState()
        self.last_check = None
