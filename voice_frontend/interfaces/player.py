"""
Abstract interface for response playback.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional


class AudioPlayer(ABC):
    """
    Plays a file in the background.

    ``play`` returns once playback has started; the end is reported through
    ``on_completed`` or ``on_error(code)``. ``stop`` is silent and idempotent.
    """

    def __init__(self):
        self._on_completed: Optional[Callable[[], None]] = None
        self._on_error: Optional[Callable[[Optional[int]], None]] = None

    def set_callbacks(
        self,
        on_completed: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[Optional[int]], None]] = None
    ) -> None:
        self._on_completed = on_completed
        self._on_error = on_error

    def _emit_completed(self) -> None:
        if self._on_completed:
            self._on_completed()

    def _emit_error(self, code: Optional[int]) -> None:
        if self._on_error:
            self._on_error(code)

    @abstractmethod
    async def play(self, file_path: str) -> None:
        """
        Raises:
            PlaybackFailed: playback could not be started
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        pass

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        pass
