"""
Authoritative shared square state.

The store holds the one object every client is synced from. Clients keep
their own local copies; the server's copy is the correct, up-to-date one.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..utils.errors import ValidationError


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SquareSnapshot:
    """Immutable point-in-time copy of the square."""
    x: float
    y: float
    width: float
    height: float
    last_update: int

    def to_payload(self) -> Dict[str, Any]:
        """Wire form sent to clients."""
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "lastUpdate": self.last_update,
        }


class SharedStateStore:
    """
    Holds the square and applies deltas atomically.

    Every mutation happens under a lock so concurrent callers each observe
    and extend the prior state.
    """

    def __init__(
        self,
        x: float = 0,
        y: float = 0,
        width: float = 100,
        height: float = 100,
        now: Optional[int] = None,
    ):
        """
        Initialize the store.

        Args:
            x: Initial horizontal position
            y: Initial vertical position
            width: Square width, fixed for the store's lifetime
            height: Square height, fixed for the store's lifetime
            now: Initial timestamp in ms (defaults to the current time)
        """
        if width <= 0:
            raise ValidationError("width", width, "must be positive")
        if height <= 0:
            raise ValidationError("height", height, "must be positive")

        self._x = x
        self._y = y
        self._width = width
        self._height = height
        self._last_update = now if now is not None else now_ms()
        self._update_count = 0
        self._lock = threading.Lock()

    def apply_delta(self, dx: float, dy: float, now: int) -> SquareSnapshot:
        """
        Add a delta to the position and stamp the update time.

        Args:
            dx: Horizontal offset
            dy: Vertical offset
            now: Time of the mutation in ms

        Returns:
            Snapshot of the post-mutation state
        """
        with self._lock:
            self._x += dx
            self._y += dy
            # lastUpdate never moves backwards, even if the clock does
            self._last_update = max(self._last_update, now)
            self._update_count += 1
            return self._snapshot_locked()

    def snapshot(self) -> SquareSnapshot:
        """Current state without mutation."""
        with self._lock:
            return self._snapshot_locked()

    @property
    def update_count(self) -> int:
        """Number of deltas applied so far."""
        return self._update_count

    def _snapshot_locked(self) -> SquareSnapshot:
        return SquareSnapshot(
            x=self._x,
            y=self._y,
            width=self._width,
            height=self._height,
            last_update=self._last_update,
        )
