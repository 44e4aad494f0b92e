import math

import pytest

from scolioscan.pose import LEFT_SHOULDER, RIGHT_SHOULDER, LEFT_HIP, RIGHT_HIP, NUM_LANDMARKS

G = 9.81


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

    def ms(self):
        return self.now * 1000.0


def accel_at(deg):
    """In-plane gravity vector for a device tilted `deg` degrees."""
    r = math.radians(deg)
    return (G * math.cos(r), G * math.sin(r), 0.0)


def make_points(left_shoulder=None, right_shoulder=None, left_hip=None, right_hip=None):
    """33 raw landmarks, NaN except the ones given (model coordinates)."""
    points = [(float("nan"), float("nan"))] * NUM_LANDMARKS
    for index, p in ((LEFT_SHOULDER, left_shoulder), (RIGHT_SHOULDER, right_shoulder),
                     (LEFT_HIP, left_hip), (RIGHT_HIP, right_hip)):
        if p is not None:
            points[index] = p
    return points


# Raw points that land at (0.7, 0.5) / (0.3, 0.5) after the upright transform:
# back to the camera, inside the outer guide, outside the inner one.
GOOD_LEFT = (0.5, 0.3)
GOOD_RIGHT = (0.5, 0.7)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def good_points():
    return make_points(GOOD_LEFT, GOOD_RIGHT)
