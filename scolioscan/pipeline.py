"""
End-to-end measurement pipelines for ScolioScan.

InclinometerPipeline:
    sensor thread -> push_acceleration_sample -> SignalConditioner
        -> LatestValue(target) -> tick() on the frame clock -> DisplaySmoother
    record_reading() appends the displayed angle to the MeasurementSession.

GuidedPosePipeline:
    pose worker -> push_landmark_frame -> LatestValue(frame)
        -> evaluate() on the UI thread -> PositionGate -> completion record
"""

import logging
import threading
from typing import Callable, Optional

from . import config
from .conditioner import SensorSample, SignalConditioner
from .gate import Completed, GateEvent, GateStatus, PositionGate
from .handoff import LatestValue
from .pose import GuideZone, LandmarkFrame
from .session import MeasurementRecord, MeasurementSession, SessionSnapshot
from .smoother import DisplaySmoother, clamp
from .timing import monotonic, monotonic_ms

logger = logging.getLogger(__name__)


class InclinometerPipeline:
    """
    Digital inclinometer: accelerometer samples in, displayed angle and
    five-reading session out.

    Usage:
        pipeline = InclinometerPipeline(store=JsonZeroOffsetStore(path))

        # sensor callback thread
        pipeline.push_acceleration_sample(ax, ay, az, t)

        # frame clock (~60 Hz)
        angle = pipeline.tick()

        pipeline.calibrate_zero()
        pipeline.record_reading()
        record = pipeline.finalize_session()
    """

    def __init__(self, store=None, clock: Callable[[], float] = monotonic):
        """
        Args:
            store: Zero-offset store with load()/save()
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self._clock = clock
        self._lock = threading.Lock()

        self.smoother = DisplaySmoother(clock=clock)
        self.conditioner = SignalConditioner(smoother=self.smoother, store=store)
        self.session = MeasurementSession()

        self._target = LatestValue(0.0)
        self._last_tick: Optional[float] = None

    # -- inputs -------------------------------------------------------------

    def push_acceleration_sample(self, x: float, y: float, z: float, timestamp: float) -> Optional[float]:
        """
        Condition one sample and publish it as the display target.

        Returns:
            The conditioned angle, or None if the sample was rejected
        """
        with self._lock:
            angle = self.conditioner.ingest(SensorSample(x, y, z, timestamp))
            if angle is not None:
                self._target.set(clamp(angle, -config.ANGLE_LIMIT_DEG, config.ANGLE_LIMIT_DEG))
        return angle

    def tick(self, dt: Optional[float] = None) -> float:
        """
        Advance the display by one frame.

        Args:
            dt: Seconds since the last tick; measured from the clock if omitted

        Returns:
            Displayed angle in degrees
        """
        now = self._clock()
        if dt is None:
            dt = config.NOMINAL_DT if self._last_tick is None else now - self._last_tick
        self._last_tick = now

        with self._lock:
            target = self._target.get()
            return self.smoother.tick(0.0 if target is None else target, dt)

    def calibrate_zero(self) -> float:
        """
        Make the current orientation read 0°.

        Conditioner offset, smoother state and the pending target change
        together under the pipeline lock.
        """
        with self._lock:
            offset = self.conditioner.calibrate()
            self._target.set(0.0)
        return offset

    def record_reading(self) -> SessionSnapshot:
        """Store |displayed angle| as the next reading (no-op once complete)."""
        with self._lock:
            displayed = self.smoother.get_displayed()
        return self.session.record(clamp(displayed, -config.ANGLE_LIMIT_DEG, config.ANGLE_LIMIT_DEG))

    def reset_session(self):
        """Drop all readings and the peak for a fresh sequence."""
        with self._lock:
            self.session.reset()
            self.smoother.reset()
        logger.info("Inclinometer session reset")

    # -- queries ------------------------------------------------------------

    def current_displayed_angle(self) -> float:
        return self.smoother.get_displayed()

    def current_peak(self) -> float:
        return self.smoother.get_peak()

    def session_snapshot(self) -> SessionSnapshot:
        return self.session.snapshot()

    def finalize_session(self) -> MeasurementRecord:
        record = self.session.finalize()
        if not record.is_complete:
            logger.warning(
                "Finalizing incomplete session (%d/%d readings)",
                len(record.readings), self.session.capacity,
            )
        return record


class GuidedPosePipeline:
    """
    Guided-pose capture: landmark frames in, gate status and a single
    approximate measurement record out.

    Usage:
        pipeline = GuidedPosePipeline()

        # pose worker thread
        pipeline.push_landmark_frame(points, t)

        # UI thread, each frame
        event = pipeline.evaluate()
        record = pipeline.complete_on_hold()
    """

    def __init__(
        self,
        zone: Optional[GuideZone] = None,
        mirror: bool = config.MIRROR_HORIZONTALLY,
        clock_ms: Callable[[], float] = monotonic_ms,
    ):
        if zone is None:
            zone = GuideZone.from_bounds(config.OUTER_GUIDE, config.INNER_GUIDE)
        self.gate = PositionGate(zone, mirror=mirror, clock_ms=clock_ms)

        self._frame = LatestValue()
        self._lock = threading.Lock()
        self._completed: Optional[Completed] = None

    def push_landmark_frame(self, points, timestamp: float):
        """Store the newest frame; an unconsumed older frame is dropped."""
        self._frame.set(LandmarkFrame.from_points(points, timestamp))

    def evaluate(self, now_ms: Optional[float] = None) -> Optional[GateEvent]:
        """Run the gate on the latest frame. Calls are serialized."""
        with self._lock:
            event = self.gate.evaluate(self._frame.get(), now_ms)
            if isinstance(event, Completed):
                self._completed = event
            return event

    def complete_on_hold(self) -> Optional[MeasurementRecord]:
        """Record for the completed hold, or None if the hold has not completed."""
        with self._lock:
            completed = self._completed
        if completed is None or completed.result is None:
            return None
        return MeasurementRecord.from_pose_estimate(completed.result)

    def current_gate_status(self) -> GateStatus:
        with self._lock:
            return self.gate.status()

    def reset_session(self):
        with self._lock:
            self.gate.reset()
            self._completed = None
            self._frame.clear()
        logger.info("Guided pose session reset")
