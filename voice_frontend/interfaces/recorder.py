"""
Abstract interface for the audio capture collaborator.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..models.data_models import AmplitudeSample, RecordingResult


class AudioRecorder(ABC):
    """
    Records the microphone to a file.

    While recording, implementations report ``AmplitudeSample`` values
    periodically, then exactly one terminal event: ``on_finished`` with the
    file, or ``on_error`` with the exception. Callbacks may fire on any thread.
    """

    def __init__(self):
        self._on_started: Optional[Callable[[str], None]] = None
        self._on_sample: Optional[Callable[[AmplitudeSample], None]] = None
        self._on_finished: Optional[Callable[[RecordingResult], None]] = None
        self._on_error: Optional[Callable[[Exception], None]] = None

    def set_callbacks(
        self,
        on_started: Optional[Callable[[str], None]] = None,
        on_sample: Optional[Callable[[AmplitudeSample], None]] = None,
        on_finished: Optional[Callable[[RecordingResult], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None
    ) -> None:
        self._on_started = on_started
        self._on_sample = on_sample
        self._on_finished = on_finished
        self._on_error = on_error

    def _emit_started(self, path: str) -> None:
        if self._on_started:
            self._on_started(path)

    def _emit_sample(self, sample: AmplitudeSample) -> None:
        if self._on_sample:
            self._on_sample(sample)

    def _emit_finished(self, result: RecordingResult) -> None:
        if self._on_finished:
            self._on_finished(result)

    def _emit_error(self, error: Exception) -> None:
        if self._on_error:
            self._on_error(error)

    @abstractmethod
    async def start_recording(self, path: str, channel_count: int, sample_rate: int,
                              bitrate: int) -> None:
        """
        Start capturing to ``path``.

        Raises:
            PermissionDenied: no usable input device
            StorageExhausted: not enough free space to start
        """
        pass

    @abstractmethod
    async def stop_recording(self) -> None:
        """Finish the file; the terminal event follows."""
        pass

    @abstractmethod
    async def pause(self) -> None:
        pass

    @abstractmethod
    async def resume(self) -> None:
        pass

    @property
    @abstractmethod
    def is_recording(self) -> bool:
        pass
