"""
Pytest configuration and shared fixtures for voice front end tests.

Collaborators are in-memory fakes; every call they receive is appended to a
shared ``timeline`` so tests can assert on ordering.
"""

import asyncio
import sys
import time
from pathlib import Path
from typing import List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from voice_frontend.interfaces import (  # noqa: E402
    AudioPlayer,
    AudioRecorder,
    AudioUploader,
    PressEventSource,
    WakeWordEngine,
)
from voice_frontend.models.data_models import AmplitudeSample, RecordingResult, UploadResult  # noqa: E402
from voice_frontend.orchestrator import ConversationOrchestrator  # noqa: E402
from voice_frontend.providers.wake_lock import NullWakeLock  # noqa: E402
from voice_frontend.utils.error_handling import EngineError, ErrorHandler  # noqa: E402
from voice_frontend.utils.event_bus import EventBus  # noqa: E402
from voice_frontend.utils.microphone_arbiter import MicrophoneArbiter  # noqa: E402
from voice_frontend.utils.serial_dispatcher import SerialDispatcher  # noqa: E402
from voice_frontend.utils.silence_gate import SilenceGate  # noqa: E402

SETTLE_DELAY = 0.02
GUARD_DELAY = 0.03


class FakeEngine(WakeWordEngine):
    def __init__(self, timeline: List[str]):
        super().__init__()
        self.timeline = timeline
        self.fail_start = False
        self.fail_stop = False
        self.starts = 0
        self.stops = 0
        self._listening = False

    async def start(self) -> None:
        if self.fail_start:
            raise EngineError("model missing")
        self.starts += 1
        self._listening = True
        self.timeline.append("engine.start")

    async def stop(self) -> None:
        self.stops += 1
        self._listening = False
        self.timeline.append("engine.stop")
        if self.fail_stop:
            raise EngineError("invalid handle")

    @property
    def is_listening(self) -> bool:
        return self._listening

    def detect(self) -> None:
        self._notify_detected()


class FakeRecorder(AudioRecorder):
    def __init__(self, timeline: List[str]):
        super().__init__()
        self.timeline = timeline
        self.start_error: Optional[Exception] = None
        self.result_size = 2048
        self.paths: List[str] = []
        self.paused = False
        self._recording = False

    async def start_recording(self, path, channel_count, sample_rate, bitrate) -> None:
        if self.start_error is not None:
            raise self.start_error
        self._recording = True
        self.paths.append(path)
        self.timeline.append("recorder.start")
        self._emit_started(path)

    async def stop_recording(self) -> None:
        if not self._recording:
            return
        self._recording = False
        self.timeline.append("recorder.stop")
        Path(self.paths[-1]).write_bytes(b"\x00" * self.result_size)
        self._emit_finished(RecordingResult(file_path=self.paths[-1], duration_ms=3000,
                                            size_bytes=self.result_size))

    async def pause(self) -> None:
        self.paused = True
        self.timeline.append("recorder.pause")

    async def resume(self) -> None:
        self.paused = False
        self.timeline.append("recorder.resume")

    @property
    def is_recording(self) -> bool:
        return self._recording

    def sample(self, elapsed_ms: int, amplitude: int) -> None:
        self._emit_sample(AmplitudeSample(elapsed_ms=elapsed_ms, amplitude=amplitude))

    def fail(self, error: Exception) -> None:
        self._recording = False
        self._emit_error(error)


class FakeUploader(AudioUploader):
    def __init__(self, timeline: List[str], tmp_path: Path):
        self.timeline = timeline
        self.tmp_path = tmp_path
        self.error: Optional[Exception] = None
        self.should_continue = False
        self.hold: Optional[asyncio.Event] = None
        self.uploaded: List[str] = []
        self.cancelled = False
        self.closed = False

    async def upload(self, file_path: str) -> UploadResult:
        self.timeline.append("upload.start")
        self.uploaded.append(file_path)
        try:
            if self.hold is not None:
                await self.hold.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            self.timeline.append("upload.cancelled")
            raise
        if self.error is not None:
            raise self.error
        reply = self.tmp_path / f"reply_{len(self.uploaded)}.mp3"
        reply.write_bytes(b"ID3fake")
        return UploadResult(audio_path=str(reply), should_continue=self.should_continue,
                            transcription="turn on the lights", response_text="Done.")

    async def close(self) -> None:
        self.closed = True
        self.timeline.append("upload.close")


class FakePlayer(AudioPlayer):
    def __init__(self, timeline: List[str]):
        super().__init__()
        self.timeline = timeline
        self.played: List[str] = []
        self.play_error: Optional[Exception] = None
        self._playing = False

    async def play(self, file_path: str) -> None:
        if self.play_error is not None:
            raise self.play_error
        self.played.append(file_path)
        self._playing = True
        self.timeline.append("player.play")

    async def stop(self) -> None:
        if self._playing:
            self.timeline.append("player.stop")
        self._playing = False

    @property
    def is_playing(self) -> bool:
        return self._playing

    def finish(self) -> None:
        self._playing = False
        self._emit_completed()

    def fail(self, code: int) -> None:
        self._playing = False
        self._emit_error(code)


class FakePressSource(PressEventSource):
    def __init__(self):
        self.on_press = None
        self.stopped = False

    def start(self, on_press) -> None:
        self.on_press = on_press

    def stop(self) -> None:
        self.stopped = True
        self.on_press = None


class RecordingWakeLock(NullWakeLock):
    def __init__(self, timeline: List[str]):
        super().__init__()
        self.timeline = timeline

    def acquire(self) -> None:
        super().acquire()
        self.timeline.append("wake_lock.acquire")

    def release(self) -> None:
        super().release()
        self.timeline.append("wake_lock.release")


class Frontend:
    """Arbiter + orchestrator wired to fakes; ``async with`` runs the dispatcher."""

    def __init__(self, tmp_path: Path, permission: bool = True, silence: bool = True,
                 keep_recordings: bool = True):
        self.timeline: List[str] = []
        self.engine = FakeEngine(self.timeline)
        self.recorder = FakeRecorder(self.timeline)
        self.uploader = FakeUploader(self.timeline, tmp_path)
        self.player = FakePlayer(self.timeline)
        self.events = EventBus()
        self.error_handler = ErrorHandler()
        self.dispatcher = SerialDispatcher(name="test")
        self.arbiter = MicrophoneArbiter(self.engine, events=self.events,
                                         settle_delay=SETTLE_DELAY, guard_delay=GUARD_DELAY)
        self.silence_gate = SilenceGate(amplitude_threshold=500, duration_ms=2500) if silence else None
        self.permission = permission
        self.orchestrator = ConversationOrchestrator(
            arbiter=self.arbiter,
            recorder=self.recorder,
            uploader=self.uploader,
            player=self.player,
            dispatcher=self.dispatcher,
            events=self.events,
            silence_gate=self.silence_gate,
            recording_config={'directory': str(tmp_path / "recordings"),
                              'keep_recordings': keep_recordings},
            permission_check=lambda: self.permission,
            error_handler=self.error_handler,
        )
        self.event_log = []
        self.events.subscribe_all(self.event_log.append)

    def kinds(self):
        return [e.kind for e in self.event_log]

    async def __aenter__(self) -> "Frontend":
        await self.dispatcher.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.orchestrator.shutdown()
        await self.dispatcher.stop()


@pytest.fixture(scope="session")
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def timeline():
    return []


@pytest.fixture
def fake_engine(timeline):
    return FakeEngine(timeline)


@pytest.fixture
def make_frontend(tmp_path):
    """Build a Frontend; use as ``async with make_frontend() as fe``."""
    def build(**kwargs) -> Frontend:
        return Frontend(tmp_path, **kwargs)
    return build


@pytest.fixture
def fakes(tmp_path):
    """Fake collaborator set for VoiceService, sharing one timeline."""
    timeline: List[str] = []
    return {
        'timeline': timeline,
        'wakeword': FakeEngine(timeline),
        'recorder': FakeRecorder(timeline),
        'upload': FakeUploader(timeline, tmp_path),
        'playback': FakePlayer(timeline),
        'press_source': FakePressSource(),
        'wake_lock': RecordingWakeLock(timeline),
    }


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds or the timeout expires."""
    async def _wait(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            await asyncio.sleep(interval)
        return predicate()
    return _wait
