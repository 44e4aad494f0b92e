"""Monotonic time base shared by the gate and the display smoother."""
import time

# Authoritative time base in seconds; never wall-clock
monotonic = time.monotonic


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0
