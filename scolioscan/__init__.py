"""
ScolioScan Measurement Core

Turns a tablet's accelerometer stream or camera pose landmarks into a
stable spinal tilt angle, a guided-capture hold, and a five-region record:
- SignalConditioner: gravity low-pass, median despike, outlier rejection, zero offset
- DisplaySmoother: critically damped spring with peak tracking
- PositionGate: orientation / framing checks and the 3 s hold timer
- MeasurementSession: five readings -> thoracic / thoracolumbar / lumbar + score
- InclinometerPipeline / GuidedPosePipeline: thread-safe end-to-end wiring

Usage:
    from scolioscan import InclinometerPipeline, JsonZeroOffsetStore

    pipeline = InclinometerPipeline(store=JsonZeroOffsetStore(path, "tablet-3"))

    # Sensor callback:
    pipeline.push_acceleration_sample(ax, ay, az, t)

    # Frame clock:
    angle = pipeline.tick()

    pipeline.calibrate_zero()
    pipeline.record_reading()
    record = pipeline.finalize_session()
"""

from .calibration import JsonZeroOffsetStore, MemoryZeroOffsetStore
from .conditioner import SensorSample, SignalConditioner, gravity_angle
from .smoother import DisplaySmoother
from .pose import GuideZone, GuideZoneError, LandmarkFrame, PoseEstimate, Rect, estimate_curvature
from .gate import (
    Completed,
    GatePhase,
    GateReason,
    GateStatus,
    HoldingWithRemaining,
    PositionGate,
    Unsatisfied,
)
from .session import MeasurementRecord, MeasurementSession, SessionSnapshot, compute_score
from .handoff import LatestValue
from .pipeline import GuidedPosePipeline, InclinometerPipeline

__all__ = [
    # Calibration
    'JsonZeroOffsetStore',
    'MemoryZeroOffsetStore',

    # Inclinometer
    'SensorSample',
    'SignalConditioner',
    'gravity_angle',
    'DisplaySmoother',

    # Guided pose
    'GuideZone',
    'GuideZoneError',
    'LandmarkFrame',
    'PoseEstimate',
    'Rect',
    'estimate_curvature',
    'PositionGate',
    'GatePhase',
    'GateReason',
    'GateStatus',
    'Unsatisfied',
    'HoldingWithRemaining',
    'Completed',

    # Session
    'MeasurementSession',
    'MeasurementRecord',
    'SessionSnapshot',
    'compute_score',

    # Pipelines
    'LatestValue',
    'InclinometerPipeline',
    'GuidedPosePipeline',
]

__version__ = '1.0.0'
