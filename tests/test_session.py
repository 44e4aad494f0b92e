import pytest

from scolioscan import config
from scolioscan.pose import PoseEstimate
from scolioscan.session import MeasurementRecord, MeasurementSession, compute_score


def recorded(values):
    session = MeasurementSession()
    for v in values:
        session.record(v)
    return session


def test_region_aggregation():
    session = recorded([5, 7, 3, 4, 6])

    assert session.thoracic() == 6.0
    assert session.thoracolumbar() == 3.0
    assert session.lumbar() == 5.0
    assert session.score() == 89.0
    assert session.aggregate() == {
        "region_averages": {"thoracic": 6.0, "thoracolumbar": 3.0, "lumbar": 5.0},
        "score": 89.0,
    }


def test_readings_stored_as_magnitudes():
    session = recorded([-5, 7, -3])
    assert session.readings == [5.0, 7.0, 3.0]


def test_non_finite_readings_skipped():
    session = recorded([5, float("nan"), 7, float("inf"), 3, 4, 6])

    assert session.readings == [5.0, 7.0, 3.0, 4.0, 6.0]
    assert session.score() == 89.0


def test_capacity_is_five():
    session = recorded([1, 2, 3, 4, 5])
    assert session.is_complete()

    snapshot = session.record(9)
    assert snapshot.readings == (1.0, 2.0, 3.0, 4.0, 5.0)
    assert snapshot.is_complete
    assert snapshot.current_label is None


def test_labels_follow_progress():
    session = MeasurementSession()
    seen = []
    for v in range(5):
        seen.append(session.current_label)
        session.record(v)
    assert tuple(seen) == config.MEASUREMENT_LABELS


def test_incomplete_regions_are_zero():
    session = recorded([8, 10, 2])
    assert session.thoracic() == 9.0
    assert session.thoracolumbar() == 2.0
    assert session.lumbar() == 0.0

    record = session.finalize()
    assert not record.is_complete
    assert record.lumbar == 0.0
    assert record.score == 91.0


def test_score_is_clamped():
    assert compute_score(60.0, 60.0) == 0.0
    assert compute_score(0.0, 0.0) == 100.0


def test_finalize_payload():
    record = recorded([5, 7, 3, 4, 6]).finalize()

    assert record.analysis_type == config.ANALYSIS_TYPE_SCOLIOMETER
    assert record.to_payload() == {
        "analysis_type": 3,
        "main_thoracic": 6.0,
        "second_thoracic": 3.0,
        "lumbar": 5.0,
        "score": 89.0,
    }


def test_reset_clears_readings():
    session = recorded([5, 7, 3, 4, 6])
    session.reset()
    assert session.readings == []
    assert session.current_index == 0
    assert not session.is_complete()


def test_record_from_pose_estimate():
    estimate = PoseEstimate(
        shoulder_tilt=-4.0, hip_tilt=2.0, main_thoracic=4.0, lumbar=6.0, timestamp=0.0,
    )
    record = MeasurementRecord.from_pose_estimate(estimate)

    assert record.analysis_type == config.ANALYSIS_TYPE_2D
    assert record.approximate
    assert record.thoracolumbar is None
    assert record.score == 90.0
    assert "second_thoracic" not in record.to_payload()
    assert record.to_payload()["main_thoracic"] == pytest.approx(4.0)
