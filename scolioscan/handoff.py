"""Thread-safe single-slot handoff between producer and frame-clock threads."""
import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class LatestValue(Generic[T]):
    """
    Holds only the most recent value written by a producer.

    Writers overwrite whatever has not been consumed yet; readers never
    block waiting for a new value. There is no queue and no backpressure.
    """

    def __init__(self, initial: Optional[T] = None):
        self._lock = threading.Lock()
        self._value = initial

    def set(self, value: T) -> None:
        """Replace the stored value."""
        with self._lock:
            self._value = value

    def get(self) -> Optional[T]:
        """Return the stored value without consuming it."""
        with self._lock:
            return self._value

    def clear(self) -> None:
        with self._lock:
            self._value = None
