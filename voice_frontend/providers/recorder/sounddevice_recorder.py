"""
Microphone recorder writing 16-bit PCM WAV files.
"""

import asyncio
import shutil
import threading
import wave
from pathlib import Path
from typing import Dict, Any, Optional

import numpy as np

from ...interfaces.recorder import AudioRecorder
from ...models.data_models import AmplitudeSample, RecordingResult
from ...utils.error_handling import PermissionDenied, StorageExhausted
from ...utils.logging_config import get_logger

logger = get_logger("recorder")


def free_bytes(directory: Path) -> int:
    """Free space on the filesystem holding ``directory``."""
    probe = directory
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    return shutil.disk_usage(probe).free


class SoundDeviceRecorder(AudioRecorder):
    """
    Captures through a sounddevice callback stream.

    The audio callback runs on PortAudio's thread: it writes frames, tracks
    the peak level and emits an ``AmplitudeSample`` every
    ``sample_interval_ms`` of recorded audio. Free space is rechecked every
    ``space_check_period_ms``; when it drops below ``min_free_bytes`` the
    recording is closed and ``StorageExhausted`` is emitted as its terminal event.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__()
        self.sample_interval_ms: int = int(config.get('sample_interval_ms', 200))
        self.space_check_period_ms: int = int(config.get('space_check_period_ms', 10000))
        self.min_free_bytes: int = int(config.get('min_free_bytes', 50 * 1024 * 1024))
        self.blocksize: int = int(config.get('blocksize', 1024))
        self.device: Optional[int] = config.get('input_device_index')
        self.latency = config.get('latency', 'low')

        self._stream = None
        self._wave: Optional[wave.Wave_write] = None
        self._path: Optional[str] = None
        self._channels = 1
        self._sample_rate = 16000
        self._bitrate = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()
        self._paused = False
        self._finishing = False
        self._finish_task: Optional[asyncio.Task] = None

        self._frames_written = 0
        self._peak = 0
        self._next_sample_ms = 0
        self._next_space_check_ms = 0

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    @property
    def is_paused(self) -> bool:
        return self._paused

    async def start_recording(self, path: str, channel_count: int, sample_rate: int,
                              bitrate: int) -> None:
        if self._stream is not None:
            logger.warning("Recording already in progress: %s", self._path)
            return

        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        if free_bytes(target.parent) < self.min_free_bytes:
            raise StorageExhausted(f"Less than {self.min_free_bytes} bytes free for {path}")

        import sounddevice as sd

        try:
            sd.check_input_settings(device=self.device, channels=channel_count,
                                    dtype='int16', samplerate=sample_rate)
        except Exception as e:
            raise PermissionDenied(f"Input device unavailable: {e}") from e

        self._loop = asyncio.get_running_loop()
        self._path = str(target)
        self._channels = channel_count
        self._sample_rate = sample_rate
        self._bitrate = bitrate
        self._paused = False
        self._finishing = False
        self._frames_written = 0
        self._peak = 0
        self._next_sample_ms = self.sample_interval_ms
        self._next_space_check_ms = self.space_check_period_ms

        wav = wave.open(self._path, 'wb')
        wav.setnchannels(channel_count)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        self._wave = wav

        try:
            stream = sd.InputStream(
                samplerate=sample_rate,
                channels=channel_count,
                dtype='int16',
                blocksize=self.blocksize,
                device=self.device,
                latency=self.latency,
                callback=self._audio_callback,
            )
            stream.start()
        except Exception as e:
            self._close_wave()
            raise PermissionDenied(f"Failed to open input stream: {e}") from e

        self._stream = stream
        logger.info("Recording started: %s (%d Hz, %d ch)", self._path, sample_rate, channel_count)
        self._emit_started(self._path)

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            logger.debug("Input status: %s", status)
        if self._paused or self._finishing:
            return

        with self._lock:
            if self._wave is None:
                return
            self._wave.writeframes(indata.tobytes())
            self._frames_written += frames
            self._peak = max(self._peak, int(np.abs(indata.astype(np.int32)).max(initial=0)))
            elapsed_ms = self._elapsed_ms()

            sample = None
            if elapsed_ms >= self._next_sample_ms:
                sample = AmplitudeSample(elapsed_ms=elapsed_ms, amplitude=min(self._peak, 32767))
                self._peak = 0
                self._next_sample_ms = elapsed_ms + self.sample_interval_ms

            out_of_space = False
            if elapsed_ms >= self._next_space_check_ms:
                self._next_space_check_ms = elapsed_ms + self.space_check_period_ms
                out_of_space = free_bytes(Path(self._path).parent) < self.min_free_bytes

        if sample is not None:
            self._emit_sample(sample)
        if out_of_space:
            self._finishing = True
            logger.warning("Free space below %d bytes, closing recording", self.min_free_bytes)
            self._loop.call_soon_threadsafe(self._schedule_finish, StorageExhausted())

    def _schedule_finish(self, error: Exception) -> None:
        self._finish_task = asyncio.ensure_future(self._finish(error))
        self._finish_task.add_done_callback(self._on_finish_done)

    def _on_finish_done(self, task: asyncio.Task) -> None:
        if self._finish_task is task:
            self._finish_task = None
        if not task.cancelled() and task.exception() is not None:
            logger.error("Closing recording failed: %s", task.exception())

    def _elapsed_ms(self) -> int:
        return int(self._frames_written * 1000 / self._sample_rate)

    async def stop_recording(self) -> None:
        if self._stream is None or self._finishing:
            return
        self._finishing = True
        await self._finish(None)

    async def _finish(self, error: Optional[Exception]) -> None:
        stream = self._stream
        self._stream = None
        if stream is None:
            return

        try:
            await asyncio.to_thread(self._close_stream, stream)
        finally:
            with self._lock:
                frames = self._frames_written
                self._close_wave()

        path = self._path
        self._paused = False
        if error is not None:
            self._emit_error(error)
            return

        result = RecordingResult(
            file_path=path,
            duration_ms=int(frames * 1000 / self._sample_rate),
            size_bytes=frames * 2 * self._channels,
            metadata={
                'sample_rate': self._sample_rate,
                'channels': self._channels,
                'bitrate': self._bitrate,
            },
        )
        logger.info("Recording finished: %s (%dms)", path, result.duration_ms)
        self._emit_finished(result)

    @staticmethod
    def _close_stream(stream) -> None:
        try:
            stream.stop()
        finally:
            stream.close()

    def _close_wave(self) -> None:
        wav = self._wave
        self._wave = None
        if wav is not None:
            wav.close()

    async def pause(self) -> None:
        if self._stream is not None:
            self._paused = True

    async def resume(self) -> None:
        if self._stream is not None:
            self._paused = False
