"""
Zero-offset persistence for ScolioScan.

The conditioner only sees a store with load() and save(); where the value
actually lives (a JSON file per installation, memory in tests) is up to
the caller.
"""

import json
import logging
import math
import os
from typing import Optional

logger = logging.getLogger(__name__)


class MemoryZeroOffsetStore:
    """In-process store, used by tests and when nothing should be persisted."""

    def __init__(self, value: float = 0.0):
        self.value = float(value)
        self.saves = 0

    def load(self) -> float:
        return self.value

    def save(self, degrees: float) -> None:
        self.value = float(degrees)
        self.saves += 1


class JsonZeroOffsetStore:
    """
    Zero offset stored in a small JSON file keyed by installation id.

    File layout:
        {"<installation_id>": {"zero_offset": 1.25}}

    Usage:
        store = JsonZeroOffsetStore("/var/lib/scolioscan/calibration.json", "tablet-3")
        offset = store.load()
        store.save(offset)
    """

    def __init__(self, path: str, installation_id: str = "default"):
        """
        Args:
            path: JSON file holding offsets for every installation
            installation_id: Key under which this installation's offset lives
        """
        self.path = path
        self.installation_id = installation_id

    def _read_all(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Unreadable calibration file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> float:
        entry = self._read_all().get(self.installation_id)
        if not isinstance(entry, dict):
            return 0.0
        try:
            value = float(entry.get("zero_offset", 0.0))
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(value):
            return 0.0
        return value

    def save(self, degrees: float) -> None:
        data = self._read_all()
        data[self.installation_id] = {"zero_offset": float(degrees)}

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, self.path)


def load_zero_offset(store: Optional[object]) -> float:
    """Read the persisted offset, falling back to 0.0 if the store fails."""
    if store is None:
        return 0.0
    try:
        value = float(store.load())
    except (OSError, TypeError, ValueError) as e:
        logger.warning("Zero offset load failed: %s", e)
        return 0.0
    return value if math.isfinite(value) else 0.0


def save_zero_offset(store: Optional[object], degrees: float) -> bool:
    """Persist the offset. Returns False (and logs) if the store fails."""
    if store is None:
        return False
    try:
        store.save(degrees)
    except OSError as e:
        logger.error("Zero offset save failed: %s", e)
        return False
    return True
