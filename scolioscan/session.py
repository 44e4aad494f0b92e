"""
Multi-reading measurement protocol for ScolioScan.

Five inclinometer readings are taken down the spine, one per region
position, then collapsed into thoracic / thoracolumbar / lumbar values and
a 0-100 score. A guided-pose completion produces the same record shape.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from . import config
from .pose import PoseEstimate

logger = logging.getLogger(__name__)


def clamp(v, lo, hi):
    return lo if v < lo else hi if v > hi else v


def compute_score(thoracic: float, lumbar: float) -> float:
    """100 minus total deviation, clamped to 0-100 (higher = straighter)."""
    return clamp(100.0 - (thoracic + lumbar), 0.0, 100.0)


@dataclass(frozen=True)
class SessionSnapshot:
    readings: Tuple[float, ...]
    is_complete: bool
    current_index: int
    current_label: Optional[str]

    def to_dict(self) -> dict:
        return {
            "readings": [round(float(r), 2) for r in self.readings],
            "count": len(self.readings),
            "total": config.TOTAL_MEASUREMENTS,
            "is_complete": self.is_complete,
            "current_index": self.current_index,
            "current_label": self.current_label,
        }


@dataclass(frozen=True)
class MeasurementRecord:
    """Completed measurement, ready for the submission collaborator."""
    analysis_type: int
    thoracic: float
    thoracolumbar: Optional[float]
    lumbar: float
    score: float
    readings: Tuple[float, ...] = ()
    is_complete: bool = True
    approximate: bool = False

    @classmethod
    def from_pose_estimate(cls, estimate: PoseEstimate) -> "MeasurementRecord":
        thoracic = float(estimate.main_thoracic)
        lumbar = float(estimate.lumbar)
        return cls(
            analysis_type=config.ANALYSIS_TYPE_2D,
            thoracic=thoracic,
            thoracolumbar=None,
            lumbar=lumbar,
            score=compute_score(thoracic, lumbar),
            approximate=True,
        )

    def to_payload(self) -> Dict[str, object]:
        """Field names expected by the analysis backend."""
        payload = {
            "analysis_type": self.analysis_type,
            "main_thoracic": round(self.thoracic, 2),
            "lumbar": round(self.lumbar, 2),
            "score": round(self.score, 2),
        }
        if self.thoracolumbar is not None:
            payload["second_thoracic"] = round(self.thoracolumbar, 2)
        return payload


class MeasurementSession:
    """
    Ordered, append-only list of up to five absolute readings.

    Reading positions map to regions:
        0, 1 -> thoracic (mean)
        2    -> thoracolumbar
        3, 4 -> lumbar (mean)

    Usage:
        session = MeasurementSession()
        for angle in readings:
            session.record(angle)
        if session.is_complete():
            record = session.finalize()
    """

    def __init__(self, capacity: int = config.TOTAL_MEASUREMENTS,
                 labels: Tuple[str, ...] = config.MEASUREMENT_LABELS):
        self.capacity = capacity
        self.labels = labels
        self.readings: List[float] = []

    def record(self, value: float) -> SessionSnapshot:
        """
        Append one reading (stored as an absolute value).

        Once the session is complete this does nothing; the caller routes
        to finalize() or reset() instead. Non-finite values are skipped.
        """
        if self.is_complete():
            logger.debug("Session already complete, reading %.2f ignored", value)
            return self.snapshot()

        value = float(value)
        if not math.isfinite(value):
            logger.warning("Non-finite reading %r skipped", value)
            return self.snapshot()

        self.readings.append(abs(value))
        logger.info(
            "Recorded measurement %d/%d: %.1f°",
            len(self.readings), self.capacity, self.readings[-1],
        )
        return self.snapshot()

    def is_complete(self) -> bool:
        return len(self.readings) >= self.capacity

    @property
    def current_index(self) -> int:
        return len(self.readings)

    @property
    def current_label(self) -> Optional[str]:
        i = self.current_index
        return self.labels[i] if i < len(self.labels) else None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            readings=tuple(self.readings),
            is_complete=self.is_complete(),
            current_index=self.current_index,
            current_label=self.current_label,
        )

    def thoracic(self) -> float:
        """Mean of readings 1-2, or 0 if they are not both present."""
        if len(self.readings) < 2:
            return 0.0
        return (self.readings[0] + self.readings[1]) / 2.0

    def thoracolumbar(self) -> float:
        if len(self.readings) < 3:
            return 0.0
        return self.readings[2]

    def lumbar(self) -> float:
        if len(self.readings) < 5:
            return 0.0
        return (self.readings[3] + self.readings[4]) / 2.0

    def score(self) -> float:
        # thoracolumbar is not part of the score
        return compute_score(self.thoracic(), self.lumbar())

    def aggregate(self) -> Dict[str, object]:
        return {
            "region_averages": {
                "thoracic": self.thoracic(),
                "thoracolumbar": self.thoracolumbar(),
                "lumbar": self.lumbar(),
            },
            "score": self.score(),
        }

    def finalize(self) -> MeasurementRecord:
        """Build the record from whatever readings exist (zeros if incomplete)."""
        return MeasurementRecord(
            analysis_type=config.ANALYSIS_TYPE_SCOLIOMETER,
            thoracic=self.thoracic(),
            thoracolumbar=self.thoracolumbar(),
            lumbar=self.lumbar(),
            score=self.score(),
            readings=tuple(self.readings),
            is_complete=self.is_complete(),
        )

    def reset(self):
        """Clear all readings for a fresh sequence."""
        self.readings = []
