"""
Configuration for ScolioScan.

Algorithm constants are fixed tuning values for the measurement pipeline.
Deployment values (network, directories, rates) can be overridden through
SCOLIOSCAN_* environment variables.
"""

import os

# =============================================================================
# Inclinometer: signal conditioning
# =============================================================================

GRAV_ALPHA = 0.84           # gravity low-pass factor (higher = slower, smoother)
ACC_JUMP_MAX_DEG = 20.0     # max jump between accepted median angles
NORM_FLOOR = 1e-6           # avoids division by zero on a degenerate vector
HISTORY_SIZE = 3            # median-of-3 despiking

# =============================================================================
# Inclinometer: display spring
# =============================================================================

SNAP_ZERO_DEG = 0.25
WN = 6.0                    # natural frequency (rad/s)
C = 2 * WN                  # critical damping
MAX_VEL_DEG_PER_SEC = 240.0
ANGLE_LIMIT_DEG = 30.0
NOMINAL_DT = 0.016
MAX_DT = 0.1
REST_EPSILON = 1e-4
CALIBRATION_FREEZE_SEC = 0.1

# =============================================================================
# Guided pose: gating
# =============================================================================

HOLD_DURATION_MS = 3000
BEHIND_DELTA = 0.02

# Guide zones as (left, top, right, bottom); re-centered about (0.5, 0.5)
OUTER_GUIDE = (0.05, 0.2, 0.8, 0.9)
INNER_GUIDE = (0.22, 0.3, 0.43, 0.8)

MIRROR_HORIZONTALLY = os.getenv("SCOLIOSCAN_MIRROR", "0").lower() in ("1", "true", "yes")

# =============================================================================
# Measurement protocol
# =============================================================================

TOTAL_MEASUREMENTS = 5
MEASUREMENT_LABELS = (
    "Upper Thoracic",
    "Mid Thoracic",
    "Thoracolumbar",
    "Upper Lumbar",
    "Lower Lumbar",
)

ANALYSIS_TYPE_2D = 1
ANALYSIS_TYPE_SCOLIOMETER = 3

# =============================================================================
# Server / deployment
# =============================================================================

HOST = os.getenv("SCOLIOSCAN_HOST", "0.0.0.0")
PORT = int(os.getenv("SCOLIOSCAN_PORT", "8765"))

TICK_HZ = max(1.0, float(os.getenv("SCOLIOSCAN_TICK_HZ", "60")))
STATUS_HZ = max(1.0, float(os.getenv("SCOLIOSCAN_STATUS_HZ", "10")))

DATA_DIR = os.getenv(
    "SCOLIOSCAN_DATA_DIR",
    os.path.join(os.path.expanduser("~"), ".scolioscan"),
)
SESS_DIR = os.path.join(DATA_DIR, "sessions")
INSTALLATION_ID = os.getenv("SCOLIOSCAN_INSTALLATION_ID", "default")

LOG_LEVEL = os.getenv("SCOLIOSCAN_LOG_LEVEL", "INFO")
