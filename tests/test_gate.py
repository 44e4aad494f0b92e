import pytest

from conftest import GOOD_LEFT, GOOD_RIGHT, make_points
from scolioscan import config
from scolioscan.gate import (
    Completed,
    GatePhase,
    GateReason,
    HoldingWithRemaining,
    PositionGate,
    Unsatisfied,
    check_guides,
)
from scolioscan.pose import GuideZone, LandmarkFrame


@pytest.fixture
def zone():
    return GuideZone.from_bounds(config.OUTER_GUIDE, config.INNER_GUIDE)


@pytest.fixture
def gate(zone):
    return PositionGate(zone, clock_ms=lambda: 0.0)


def frame(points, t=0.0):
    return LandmarkFrame.from_points(points, t)


@pytest.mark.parametrize("left,right,reason", [
    (None, GOOD_RIGHT, GateReason.NO_SUBJECT),
    (GOOD_RIGHT, GOOD_LEFT, GateReason.FACING_CAMERA),     # shoulders swapped
    ((0.5, 0.05), GOOD_RIGHT, GateReason.OUT_OF_FRAME),    # left shoulder at x=0.95
    ((0.5, 0.45), GOOD_RIGHT, GateReason.TOO_CLOSE),       # left shoulder inside inner guide
])
def test_reasons(zone, left, right, reason):
    check = check_guides(frame(make_points(left, right)), zone)
    assert not check.ok
    assert check.reason == reason


def test_facing_camera_wins_over_framing(zone):
    # facing the camera and too close at the same time
    check = check_guides(frame(make_points((0.5, 0.55), (0.5, 0.45))), zone)
    assert check.reason == GateReason.FACING_CAMERA


def test_good_frame_passes(zone, good_points):
    check = check_guides(frame(good_points), zone)
    assert check.ok
    assert check.reason is None


def test_missing_frame_is_no_subject(gate):
    assert gate.evaluate(None, 0.0) == Unsatisfied(GateReason.NO_SUBJECT)
    assert gate.status().phase == GatePhase.IDLE


def test_hold_fires_exactly_once(gate, good_points):
    f = frame(good_points)

    assert gate.evaluate(f, 0.0) == HoldingWithRemaining(3)
    assert gate.evaluate(f, 1000.0) == HoldingWithRemaining(2)
    assert gate.evaluate(f, 2999.0) == HoldingWithRemaining(1)

    event = gate.evaluate(f, 3000.0)
    assert isinstance(event, Completed)
    assert gate.is_completed()

    assert gate.evaluate(f, 3100.0) is None
    assert gate.evaluate(None, 3200.0) is None
    assert gate.status().phase == GatePhase.COMPLETED


def test_interruption_restarts_hold(gate, good_points):
    good = frame(good_points)
    bad = frame(make_points(GOOD_RIGHT, GOOD_LEFT))

    gate.evaluate(good, 0.0)
    gate.evaluate(good, 1500.0)
    assert gate.evaluate(bad, 1600.0) == Unsatisfied(GateReason.FACING_CAMERA)
    assert gate.status().phase == GatePhase.IDLE

    assert gate.evaluate(good, 2000.0) == HoldingWithRemaining(3)
    assert gate.evaluate(good, 4999.0) == HoldingWithRemaining(1)
    assert isinstance(gate.evaluate(good, 5000.0), Completed)


def test_completion_carries_estimate(gate, good_points):
    f = frame(good_points)
    gate.evaluate(f, 0.0)
    event = gate.evaluate(f, 3000.0)

    estimate = event.result
    assert estimate.approximate
    assert estimate.main_thoracic == pytest.approx(0.0)
    assert estimate.lumbar == 0.0   # no hips


def test_reset_allows_new_hold(gate, good_points):
    f = frame(good_points)
    gate.evaluate(f, 0.0)
    gate.evaluate(f, 3000.0)

    gate.reset()
    assert gate.status().phase == GatePhase.IDLE
    assert gate.evaluate(f, 10000.0) == HoldingWithRemaining(3)


def test_uses_injected_clock(zone, good_points):
    now = [0.0]
    gate = PositionGate(zone, clock_ms=lambda: now[0])
    f = frame(good_points)

    gate.evaluate(f)
    now[0] = 3000.0
    assert isinstance(gate.evaluate(f), Completed)


def test_status_dict(gate, good_points):
    gate.evaluate(None, 0.0)
    d = gate.status().to_dict()
    assert d["state"] == "IDLE"
    assert d["reason"] == "NO_SUBJECT"
    assert d["message"]

    gate.evaluate(frame(good_points), 0.0)
    d = gate.status().to_dict()
    assert d == {"state": "HOLDING", "remaining_seconds": 3, "reason": None, "message": None}
