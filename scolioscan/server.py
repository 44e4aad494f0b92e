"""
ScolioScan WebSocket Server

Streams the measurement pipelines to a client app:
1. Receives accelerometer samples and pose landmarks from the client
2. Conditions and smooths the inclinometer angle on a 60 Hz frame clock
3. Runs the guided-pose position gate on the latest landmark frame
4. Broadcasts status at 10 Hz and writes completed records as JSON

Inbound messages:
    {"type": "accel", "x": .., "y": .., "z": .., "t": ..}
    {"type": "landmarks", "points": [[x, y], ...], "t": ..}
    {"type": "cmd", "action": "calibrate" | "record" | "reset" | "finalize"
                             | "reset_pose" | "status"}

Usage:
    scolioscan-server
    python -m scolioscan.server
"""

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

import websockets

from . import config
from .calibration import JsonZeroOffsetStore
from .gate import Completed
from .pipeline import GuidedPosePipeline, InclinometerPipeline
from .session import MeasurementRecord
from .timing import monotonic

logger = logging.getLogger(__name__)

# =============================================================================
# Server state
# =============================================================================

clients = set()

inclinometer: Optional[InclinometerPipeline] = None
pose: Optional[GuidedPosePipeline] = None


def setup(store=None, mirror: bool = config.MIRROR_HORIZONTALLY):
    """Create the pipelines the handlers and the frame loop operate on."""
    global inclinometer, pose
    inclinometer = InclinometerPipeline(store=store)
    pose = GuidedPosePipeline(mirror=mirror)
    return inclinometer, pose


# =============================================================================
# Helpers
# =============================================================================

def make_record_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


def is_command_message(msg: dict) -> bool:
    return msg.get("type") in ("cmd", "command")


def build_status() -> dict:
    snapshot = inclinometer.session_snapshot()
    return {
        "type": "status",
        "t": round(monotonic(), 3),
        "displayed": round(inclinometer.current_displayed_angle(), 2),
        "peak": round(inclinometer.current_peak(), 2),
        "session": snapshot.to_dict(),
        "gate": pose.current_gate_status().to_dict(),
    }


def write_record_summary(record: MeasurementRecord, directory: Optional[str] = None) -> Optional[str]:
    """
    Write a completed record as JSON (tmp file + atomic replace).

    Returns:
        Path of the summary file, or None if it could not be written
    """
    directory = directory or config.SESS_DIR
    record_id = make_record_id()
    path = os.path.join(directory, f"record_{record_id}.json")

    summary = {
        "record_id": record_id,
        "created": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "installation_id": config.INSTALLATION_ID,
        "payload": record.to_payload(),
        "readings": [round(float(r), 2) for r in record.readings],
        "is_complete": record.is_complete,
        "approximate": record.approximate,
    }

    try:
        os.makedirs(directory, exist_ok=True)
        tmp = path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2)
        os.replace(tmp, path)
    except OSError as e:
        logger.error("Could not write record summary %s: %s", path, e)
        return None

    logger.info("Record written: %s", path)
    return path


def _record_message(msg_type: str, record: MeasurementRecord, path: Optional[str]) -> dict:
    return {
        "type": msg_type,
        "payload": record.to_payload(),
        "readings": [round(float(r), 2) for r in record.readings],
        "is_complete": record.is_complete,
        "approximate": record.approximate,
        "summary_path": path,
    }


# =============================================================================
# Message handling
# =============================================================================

def handle_message(msg: dict) -> List[dict]:
    """
    Apply one decoded client message to the pipelines.

    Returns:
        Replies to send back to the sender (possibly empty)
    """
    if not isinstance(msg, dict):
        return []

    kind = msg.get("type")

    if kind == "accel":
        try:
            x, y, z = float(msg["x"]), float(msg["y"]), float(msg["z"])
            t = float(msg.get("t", monotonic()))
        except (KeyError, TypeError, ValueError):
            logger.debug("Ignoring malformed accel message: %r", msg)
            return []
        inclinometer.push_acceleration_sample(x, y, z, t)
        return []

    if kind == "landmarks":
        try:
            pose.push_landmark_frame(msg.get("points"), float(msg.get("t", monotonic())))
        except (IndexError, TypeError, ValueError):
            # an unreadable frame must not leave the previous subject in place
            logger.debug("Malformed landmarks message, treating as no subject")
            pose.push_landmark_frame(None, monotonic())
        return []

    if not is_command_message(msg):
        return []

    action = msg.get("action")

    if action == "calibrate":
        offset = inclinometer.calibrate_zero()
        return [{"type": "ack", "action": "calibrate", "ok": True, "zero_offset": round(offset, 3)}]

    if action == "record":
        snapshot = inclinometer.record_reading()
        return [{"type": "ack", "action": "record", "ok": True, "session": snapshot.to_dict()}]

    if action == "reset":
        inclinometer.reset_session()
        return [{"type": "ack", "action": "reset", "ok": True}]

    if action == "finalize":
        record = inclinometer.finalize_session()
        path = write_record_summary(record)
        return [
            {"type": "ack", "action": "finalize", "ok": True, "is_complete": record.is_complete},
            _record_message("session_summary", record, path),
        ]

    if action == "reset_pose":
        pose.reset_session()
        return [{"type": "ack", "action": "reset_pose", "ok": True}]

    if action == "status":
        return [build_status()]

    return [{"type": "ack", "action": action, "ok": False, "error": "unknown_action"}]


# =============================================================================
# WebSocket Broadcast
# =============================================================================

async def broadcast(msg: dict):
    if not clients:
        return
    data = json.dumps(msg)
    dead = []
    for ws in list(clients):
        try:
            await ws.send(data)
        except websockets.exceptions.ConnectionClosed:
            dead.append(ws)
    for ws in dead:
        clients.discard(ws)


async def handle_client(ws):
    clients.add(ws)
    logger.info("Client connected (%d total)", len(clients))

    try:
        await ws.send(json.dumps(build_status()))

        async for raw in ws:
            try:
                msg = json.loads(raw)
            except ValueError:
                continue

            for reply in handle_message(msg):
                await ws.send(json.dumps(reply))

    except websockets.exceptions.ConnectionClosed:
        pass
    finally:
        clients.discard(ws)
        logger.info("Client disconnected")


# =============================================================================
# Frame clock
# =============================================================================

async def frame_loop():
    """Tick the smoother and the gate at TICK_HZ, broadcast status at STATUS_HZ."""
    tick_period = 1.0 / config.TICK_HZ
    status_period = 1.0 / config.STATUS_HZ
    last_send = 0.0

    while True:
        inclinometer.tick()

        event = pose.evaluate()
        if isinstance(event, Completed):
            record = pose.complete_on_hold()
            if record is None:
                logger.warning("Hold completed without shoulder landmarks, no record produced")
            else:
                path = write_record_summary(record)
                await broadcast(_record_message("pose_result", record, path))

        t = monotonic()
        if t - last_send >= status_period:
            await broadcast(build_status())
            last_send = t

        await asyncio.sleep(tick_period)


# =============================================================================
# Main
# =============================================================================

async def main():
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = JsonZeroOffsetStore(
        os.path.join(config.DATA_DIR, "calibration.json"),
        config.INSTALLATION_ID,
    )
    setup(store=store)

    print("ScolioScan Server")
    print(f"WebSocket: ws://{config.HOST}:{config.PORT}")
    print(f"Frame clock: {config.TICK_HZ:g} Hz, status: {config.STATUS_HZ:g} Hz")
    print(f"Records: {config.SESS_DIR}")
    print(f"Zero offset: {inclinometer.conditioner.get_zero_offset():.2f}°")

    server = await websockets.serve(
        handle_client, config.HOST, config.PORT,
        ping_interval=20,
        ping_timeout=20
    )
    try:
        await frame_loop()
    finally:
        server.close()
        await server.wait_closed()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Stopped")


if __name__ == "__main__":
    run()
