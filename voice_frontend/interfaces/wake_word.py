"""
Abstract interface for wake word engines.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional


class WakeWordEngine(ABC):
    """
    Listens for a keyword and invokes the detection callback with no arguments.

    The callback may fire on any thread. Implementations raise ``EngineError``
    when they cannot start, and also when a stop fails on an invalid handle.
    """

    def __init__(self):
        self._on_detected: Optional[Callable[[], None]] = None

    def set_detection_callback(self, callback: Optional[Callable[[], None]]) -> None:
        self._on_detected = callback

    def _notify_detected(self) -> None:
        callback = self._on_detected
        if callback is not None:
            callback()

    @abstractmethod
    async def start(self) -> None:
        """Open the microphone and begin detection."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop detection and release the microphone."""
        pass

    @property
    @abstractmethod
    def is_listening(self) -> bool:
        pass

    @property
    def capabilities(self) -> dict:
        return {
            'audio_formats': ['pcm16'],
            'sample_rates': [16000],
            'threshold_configurable': True,
        }
