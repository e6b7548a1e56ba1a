"""
Silence detection over a recorder's amplitude stream.
"""

from typing import Optional

from .logging_config import get_logger

logger = get_logger("silence")

MAX_AMPLITUDE = 32767


class SilenceGate:
    """
    Fires once when amplitude stays below a threshold for a minimum duration.

    Timestamps are milliseconds on any monotonic clock; the gate only ever
    compares differences. A sample at or above the threshold interrupts the
    current span, and the timer restarts from the next quiet sample.
    """

    def __init__(self, amplitude_threshold: int = 500, duration_ms: float = 2500,
                 enabled: bool = False):
        if not 0 <= amplitude_threshold <= MAX_AMPLITUDE + 1:
            raise ValueError(f"amplitude_threshold must be within [0, {MAX_AMPLITUDE + 1}]")
        if duration_ms < 0:
            raise ValueError("duration_ms must be >= 0")
        self.amplitude_threshold = amplitude_threshold
        self.duration_ms = duration_ms
        self._enabled = enabled
        self._silence_started_at: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def silence_started_at(self) -> Optional[float]:
        return self._silence_started_at

    def enable(self) -> None:
        self._enabled = True
        self._silence_started_at = None

    def disable(self) -> None:
        self._enabled = False
        self._silence_started_at = None

    def reset(self) -> None:
        self._silence_started_at = None

    def check(self, amplitude: int, now: float) -> bool:
        """
        Feed one amplitude sample.

        Args:
            amplitude: Peak level in [0, 32767]
            now: Sample timestamp in milliseconds

        Returns:
            True exactly once per qualifying silent span
        """
        if not self._enabled:
            return False

        if amplitude < self.amplitude_threshold:
            if self._silence_started_at is None:
                self._silence_started_at = now
                logger.debug("Silence span started at %s (amplitude=%d)", now, amplitude)

            elapsed = now - self._silence_started_at
            if elapsed >= self.duration_ms:
                logger.debug("Silence detected after %sms", elapsed)
                self._silence_started_at = None
                return True
            return False

        if self._silence_started_at is not None:
            logger.debug("Silence span interrupted (amplitude=%d)", amplitude)
            self._silence_started_at = None
        return False
