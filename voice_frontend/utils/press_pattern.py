"""
Sliding-window press counter for the hardware button pattern.
"""

from collections import deque
from enum import Enum
from typing import Deque, List

from .logging_config import get_logger

logger = get_logger("buttons")


class WindowBoundary(str, Enum):
    """How a press exactly ``window_ms`` old is treated."""
    EXCLUSIVE = "exclusive"  # expired
    INCLUSIVE = "inclusive"  # still counts


class PressPatternDetector:
    """
    Flags when ``required_count`` presses land within the trailing window.

    The store is cleared as soon as the pattern fires, so the same presses
    never fire twice.
    """

    def __init__(self, required_count: int = 4, window_ms: float = 2000,
                 boundary: WindowBoundary = WindowBoundary.EXCLUSIVE):
        if required_count < 1:
            raise ValueError("required_count must be >= 1")
        if window_ms < 0:
            raise ValueError("window_ms must be >= 0")
        self.required_count = required_count
        self.window_ms = window_ms
        self.boundary = WindowBoundary(boundary)
        self._press_timestamps: Deque[float] = deque()

    @property
    def press_timestamps(self) -> List[float]:
        return list(self._press_timestamps)

    def _is_expired(self, timestamp: float, cutoff: float) -> bool:
        if self.boundary == WindowBoundary.EXCLUSIVE:
            return timestamp <= cutoff
        return timestamp < cutoff

    def add_press(self, now: float) -> bool:
        """
        Register a key-down at ``now`` (milliseconds).

        Returns:
            True if this press completes the pattern
        """
        cutoff = now - self.window_ms
        while self._press_timestamps and self._is_expired(self._press_timestamps[0], cutoff):
            self._press_timestamps.popleft()

        self._press_timestamps.append(now)
        count = len(self._press_timestamps)
        logger.debug("Press added at %s (%d/%d in window)", now, count, self.required_count)

        if count >= self.required_count:
            self._press_timestamps.clear()
            logger.info("Button pattern detected (%d presses)", count)
            return True
        return False

    def reset(self) -> None:
        self._press_timestamps.clear()
