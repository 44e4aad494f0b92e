import asyncio
import json
import os

import pytest

from conftest import accel_at
from scolioscan import config, server
from scolioscan.calibration import MemoryZeroOffsetStore


@pytest.fixture(autouse=True)
def pipelines(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "SESS_DIR", str(tmp_path / "sessions"))
    server.clients.clear()
    return server.setup(store=MemoryZeroOffsetStore(), mirror=False)


def cmd(action):
    return server.handle_message({"type": "cmd", "action": action})


def test_accel_message_feeds_conditioner(pipelines):
    inclinometer, _ = pipelines
    x, y, z = accel_at(10.0)
    assert server.handle_message({"type": "accel", "x": x, "y": y, "z": z, "t": 1.0}) == []

    assert inclinometer.conditioner.current_raw_angle() == pytest.approx(10.0)


def test_malformed_messages_ignored():
    assert server.handle_message("hello") == []
    assert server.handle_message({"type": "accel", "x": "nope"}) == []
    assert server.handle_message({"type": "landmarks", "points": 5}) == []
    assert server.handle_message({"type": "other"}) == []


def test_landmarks_message_reaches_gate(pipelines, good_points):
    _, pose = pipelines
    server.handle_message({"type": "landmarks", "points": good_points, "t": 0.0})
    assert pose.evaluate(0.0).remaining_seconds == 3


@pytest.mark.parametrize("gone", [
    {"type": "landmarks", "points": None, "t": 1.0},
    {"type": "landmarks", "points": [], "t": 1.0},
    {"type": "landmarks", "t": 1.0},
    {"type": "landmarks", "points": 5, "t": 1.0},
])
def test_lost_subject_interrupts_hold(pipelines, good_points, gone):
    _, pose = pipelines
    server.handle_message({"type": "landmarks", "points": good_points, "t": 0.0})
    assert pose.evaluate(0.0).remaining_seconds == 3

    assert server.handle_message(gone) == []
    assert pose.evaluate(3000.0).reason.value == "NO_SUBJECT"
    assert pose.complete_on_hold() is None


def test_commands_are_acknowledged():
    for action in ("calibrate", "record", "reset", "reset_pose"):
        replies = cmd(action)
        assert replies[0]["type"] == "ack"
        assert replies[0]["action"] == action
        assert replies[0]["ok"] is True


def test_unknown_action():
    reply = cmd("dance")[0]
    assert reply["ok"] is False
    assert reply["error"] == "unknown_action"


def test_record_reports_progress():
    reply = cmd("record")[0]
    assert reply["session"]["count"] == 1
    assert reply["session"]["current_label"] == config.MEASUREMENT_LABELS[1]


def test_status_message():
    status = cmd("status")[0]
    assert status["type"] == "status"
    assert status["displayed"] == 0.0
    assert status["session"]["count"] == 0
    assert status["gate"]["state"] == "IDLE"


def test_finalize_writes_summary():
    for _ in range(5):
        cmd("record")

    ack, summary = cmd("finalize")
    assert ack["is_complete"] is True
    assert summary["type"] == "session_summary"
    assert summary["payload"]["analysis_type"] == config.ANALYSIS_TYPE_SCOLIOMETER

    path = summary["summary_path"]
    assert os.path.dirname(path) == config.SESS_DIR
    with open(path, encoding="utf-8") as f:
        saved = json.load(f)
    assert saved["payload"] == summary["payload"]
    assert saved["is_complete"] is True
    assert not os.path.exists(path + ".tmp")


class FakeSocket:
    def __init__(self):
        self.sent = []

    async def send(self, data):
        self.sent.append(json.loads(data))


def test_broadcast_reaches_all_clients():
    a, b = FakeSocket(), FakeSocket()
    server.clients.update({a, b})

    asyncio.run(server.broadcast({"type": "status", "displayed": 1.0}))

    assert a.sent == [{"type": "status", "displayed": 1.0}]
    assert b.sent == a.sent
