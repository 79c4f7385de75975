"""Thread-safe bounded history of recognized chords.

Implements a fixed-capacity circular buffer that evicts the oldest entry
when full. Access is serialized with threading.Lock so live-input analysis
and sequencer-driven analysis can share one history.
"""

import logging
import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from theory.chord_analyzer import ChordMatch

logger = logging.getLogger(__name__)


class ProgressionHistory:
    """Fixed-capacity FIFO of chord matches.

    Callers only see copies through snapshot(); the storage itself is
    never exposed.
    """

    def __init__(self, capacity: int = 8):
        """Initialize progression history.

        Args:
            capacity: Maximum number of chords retained (default 8)
        """
        if capacity < 1:
            raise ValueError(f"Capacity must be >= 1, got {capacity}")

        self.capacity = capacity
        self._buffer: list[Optional["ChordMatch"]] = [None] * capacity
        self._start = 0  # index of oldest entry
        self._count = 0
        self._lock = threading.Lock()

    def append(self, match: "ChordMatch") -> Optional["ChordMatch"]:
        """Add a chord, evicting the oldest one when full.

        Args:
            match: Recognized chord

        Returns:
            The evicted chord, or None if nothing was evicted
        """
        with self._lock:
            evicted = None
            if self._count < self.capacity:
                self._buffer[(self._start + self._count) % self.capacity] = match
                self._count += 1
            else:
                evicted = self._buffer[self._start]
                self._buffer[self._start] = match
                self._start = (self._start + 1) % self.capacity

            if evicted is not None:
                logger.debug(f"Progression history full, evicted {evicted.display_name}")
            return evicted

    def snapshot(self) -> list["ChordMatch"]:
        """Return the retained chords, oldest first."""
        with self._lock:
            return [
                self._buffer[(self._start + i) % self.capacity]  # type: ignore[misc]
                for i in range(self._count)
            ]

    def latest(self) -> Optional["ChordMatch"]:
        with self._lock:
            if self._count == 0:
                return None
            return self._buffer[(self._start + self._count - 1) % self.capacity]

    def clear(self) -> None:
        with self._lock:
            self._buffer = [None] * self.capacity
            self._start = 0
            old_count = self._count
            self._count = 0
            logger.info(f"Progression history cleared ({old_count} chords removed)")

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def __repr__(self) -> str:
        return f"ProgressionHistory(capacity={self.capacity}, size={len(self)})"
