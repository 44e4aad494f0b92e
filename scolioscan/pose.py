"""
Landmark geometry for the guided-pose mode.

Landmarks come from an external pose model as normalized (x, y) points in
the 33-point body topology. This module owns the guide zones, the camera
coordinate transform, and the coarse curvature proxy computed when a hold
completes.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]

# Body topology indices (33 landmarks)
NOSE = 0
LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_HIP = 23
RIGHT_HIP = 24
NUM_LANDMARKS = 33


class GuideZoneError(ValueError):
    """Guide zone configuration is invalid (e.g. outer does not contain inner)."""


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def contains_point(self, p: Point) -> bool:
        return self.left <= p[0] <= self.right and self.top <= p[1] <= self.bottom

    def contains_rect(self, other: "Rect") -> bool:
        return (self.left <= other.left and self.top <= other.top
                and self.right >= other.right and self.bottom >= other.bottom)

    def centered(self) -> "Rect":
        """Same size, re-centered about (0.5, 0.5) and kept inside [0, 1]²."""
        half_w = min(max(self.width, 0.0), 1.0) / 2.0
        half_h = min(max(self.height, 0.0), 1.0) / 2.0
        return Rect(
            max(0.5 - half_w, 0.0),
            max(0.5 - half_h, 0.0),
            min(0.5 + half_w, 1.0),
            min(0.5 + half_h, 1.0),
        )


@dataclass(frozen=True)
class GuideZone:
    """Nested outer / inner framing rectangles, both centered on the image."""
    outer: Rect
    inner: Rect

    @classmethod
    def from_bounds(cls, outer: Sequence[float], inner: Sequence[float]) -> "GuideZone":
        """
        Build a guide zone from (left, top, right, bottom) tuples.

        Both rectangles are re-centered about (0.5, 0.5).

        Raises:
            GuideZoneError: if the outer zone does not contain the inner one
        """
        outer_c = Rect(*outer).centered()
        inner_c = Rect(*inner).centered()
        if not outer_c.contains_rect(inner_c):
            raise GuideZoneError(f"outer guide {outer_c} does not contain inner guide {inner_c}")
        return cls(outer_c, inner_c)


@dataclass(frozen=True)
class LandmarkFrame:
    """Latest landmark set from the pose model."""
    points: Tuple[Point, ...]
    timestamp: float

    @classmethod
    def from_points(cls, points, timestamp: float) -> "LandmarkFrame":
        """
        Build a frame from (x, y) pairs; None entries or coordinates count as missing.

        `points=None` (no person detected) gives an empty frame, which the
        gate reports as NO_SUBJECT.
        """
        if points is None:
            return cls((), float(timestamp))
        out = []
        for p in points:
            if p is None or p[0] is None or p[1] is None:
                out.append((math.nan, math.nan))
            else:
                out.append((float(p[0]), float(p[1])))
        return cls(tuple(out), float(timestamp))

    def get(self, index: int) -> Optional[Point]:
        if 0 <= index < len(self.points):
            x, y = self.points[index]
            if math.isfinite(x) and math.isfinite(y):
                return (x, y)
        return None


def rotate_normalize(x: float, y: float, mirror: bool = False) -> Point:
    """
    Map model coordinates into the upright view.

    The camera delivers frames rotated a quarter turn, so (x, y) becomes
    (1 - y, x). With `mirror`, x is flipped first (front camera preview).
    """
    if mirror:
        x = 1.0 - x
    return (1.0 - y, x)


def transformed(frame: LandmarkFrame, index: int, mirror: bool = False) -> Optional[Point]:
    p = frame.get(index)
    if p is None:
        return None
    return rotate_normalize(p[0], p[1], mirror)


def line_tilt_deg(a: Point, b: Point) -> float:
    """
    Tilt of the line a-b from horizontal, folded into [-90, 90] degrees.

    Folding makes the result independent of which end is listed first.
    """
    d = np.subtract(b, a)
    tilt = float(np.degrees(np.arctan2(d[1], d[0])))
    if tilt > 90.0:
        tilt -= 180.0
    elif tilt < -90.0:
        tilt += 180.0
    return tilt


@dataclass(frozen=True)
class PoseEstimate:
    """
    APPROXIMATE curvature proxy from landmark geometry.

    Not a validated clinical measure: shoulder tilt stands in for the main
    thoracic curve, hip tilt relative to shoulder tilt for the lumbar curve.
    """
    shoulder_tilt: float
    hip_tilt: Optional[float]
    main_thoracic: float
    lumbar: float
    timestamp: float
    approximate: bool = True


def estimate_curvature(frame: LandmarkFrame, mirror: bool = False) -> Optional[PoseEstimate]:
    """
    Coarse curvature estimate from the shoulder and hip lines.

    Returns:
        PoseEstimate, or None if either shoulder is missing. Missing hips
        give a lumbar value of 0.
    """
    ls = transformed(frame, LEFT_SHOULDER, mirror)
    rs = transformed(frame, RIGHT_SHOULDER, mirror)
    if ls is None or rs is None:
        return None

    shoulder_tilt = line_tilt_deg(rs, ls)

    lh = transformed(frame, LEFT_HIP, mirror)
    rh = transformed(frame, RIGHT_HIP, mirror)
    hip_tilt = line_tilt_deg(rh, lh) if (lh is not None and rh is not None) else None

    lumbar = abs(hip_tilt - shoulder_tilt) if hip_tilt is not None else 0.0

    return PoseEstimate(
        shoulder_tilt=round(shoulder_tilt, 3),
        hip_tilt=None if hip_tilt is None else round(hip_tilt, 3),
        main_thoracic=round(abs(shoulder_tilt), 3),
        lumbar=round(lumbar, 3),
        timestamp=frame.timestamp,
    )
