"""
Conversation turn-taking controller.

Drives one turn at a time through IDLE → RECORDING → UPLOADING → PLAYING and
then either back to IDLE (wake word listening resumes) or straight into a new
RECORDING turn when the remote side asks to keep the conversation going.

All public handlers run on the SerialDispatcher. Collaborator callbacks are
posted there, never executed inline. Uploads and playback run on their own
tasks; nothing here waits on them while holding the dispatcher.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional, Callable, Dict, Any

from .interfaces.player import AudioPlayer
from .interfaces.recorder import AudioRecorder
from .interfaces.uploader import AudioUploader
from .models.data_models import (
    AmplitudeSample,
    ConversationTurn,
    LifecycleEvent,
    RecordingResult,
    StopReason,
    TurnState,
    TurnTrigger,
    UploadResult,
)
from .utils.error_handling import (
    ComponentError,
    ErrorHandler,
    ErrorSeverity,
    MicrophoneBusy,
    PlaybackFailed,
    StorageExhausted,
    UploadFailed,
    VoiceFrontendError,
    safe_cleanup,
)
from .utils.event_bus import EventBus
from .utils.logging_config import get_logger
from .utils.microphone_arbiter import MicrophoneArbiter
from .utils.serial_dispatcher import SerialDispatcher
from .utils.silence_gate import SilenceGate

logger = get_logger("orchestrator")


class EmptyRecording(VoiceFrontendError):
    default_message = "Recording is empty"


class ConversationOrchestrator:
    """
    Owns the single live ConversationTurn.

    Other components observe the turn only through lifecycle events.
    """

    def __init__(
        self,
        arbiter: MicrophoneArbiter,
        recorder: AudioRecorder,
        uploader: AudioUploader,
        player: AudioPlayer,
        dispatcher: SerialDispatcher,
        events: EventBus,
        silence_gate: Optional[SilenceGate] = None,
        recording_config: Optional[Dict[str, Any]] = None,
        permission_check: Optional[Callable[[], bool]] = None,
        error_handler: Optional[ErrorHandler] = None
    ):
        self._arbiter = arbiter
        self._recorder = recorder
        self._uploader = uploader
        self._player = player
        self._dispatcher = dispatcher
        self._events = events
        self._silence_gate = silence_gate
        self._permission_check = permission_check
        self._error_handler = error_handler

        config = recording_config or {}
        self._recordings_dir = Path(config.get('directory', './recordings'))
        self._channel_count = int(config.get('channel_count', 1))
        self._sample_rate = int(config.get('sample_rate', 16000))
        self._bitrate = int(config.get('bitrate', 128000))
        self._keep_recordings = bool(config.get('keep_recordings', True))

        self._turn: Optional[ConversationTurn] = None
        self._turn_counter = 0
        self._upload_task: Optional[asyncio.Task] = None
        self._completed_turns = 0
        self._failed_turns = 0

        # Every collaborator callback goes through the dispatcher
        recorder.set_callbacks(
            on_started=lambda path: dispatcher.post(self.on_recording_started, path),
            on_sample=lambda sample: dispatcher.post(self.on_amplitude, sample),
            on_finished=lambda result: dispatcher.post(self.on_recording_finished, result),
            on_error=lambda error: dispatcher.post(self.on_recording_error, error),
        )
        player.set_callbacks(
            on_completed=lambda: dispatcher.post(self.on_playback_completed),
            on_error=lambda code: dispatcher.post(self.on_playback_error, code),
        )

    @property
    def state(self) -> TurnState:
        return self._turn.state if self._turn else TurnState.IDLE

    @property
    def is_idle(self) -> bool:
        return self.state == TurnState.IDLE

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def begin_turn(self, trigger: TurnTrigger) -> bool:
        """
        Start a new turn by taking the microphone for recording.

        Ignored while another turn is live; triggers are never queued.

        Returns:
            True if recording started
        """
        if self._turn is not None:
            logger.info("Turn %d is %s, ignoring %s trigger",
                        self._turn.turn_id, self._turn.state.value, trigger.value)
            return False

        self._turn_counter += 1
        turn = ConversationTurn(turn_id=self._turn_counter, trigger=trigger)
        self._turn = turn
        logger.info("Turn %d started by %s", turn.turn_id, trigger.value)
        return await self._start_recording(turn)

    async def toggle_recording(self, trigger: TurnTrigger) -> bool:
        """Start a turn when idle, stop the recording when recording."""
        state = self.state
        if state == TurnState.IDLE:
            return await self.begin_turn(trigger)
        if state == TurnState.RECORDING:
            reason = (StopReason.BUTTON_PATTERN if trigger == TurnTrigger.BUTTON_PATTERN
                      else StopReason.USER_INTERFACE)
            return await self.stop_recording(reason)
        logger.info("Toggle ignored while %s", state.value)
        return False

    async def stop_recording(self, reason: StopReason) -> bool:
        """
        Ask the recorder to finish. Upload begins when the file arrives.

        Silence, the button pattern and the UI all stop through here.
        """
        turn = self._turn
        if turn is None or turn.state != TurnState.RECORDING:
            return False
        if turn.stop_reason is not None:
            logger.debug("Stop already requested (%s)", turn.stop_reason.value)
            return False

        turn.stop_reason = reason
        self._disable_silence_gate()
        logger.info("Stopping recording (%s)", reason.value)
        await self._recorder.stop_recording()
        return True

    async def toggle_pause(self) -> bool:
        """
        Pause or resume the active recording.

        Returns:
            True if the recording is now paused
        """
        turn = self._turn
        if turn is None or turn.state != TurnState.RECORDING:
            return False

        if turn.paused:
            await self._recorder.resume()
            turn.paused = False
            logger.info("Recording resumed")
        else:
            await self._recorder.pause()
            turn.paused = True
            logger.info("Recording paused")

        if self._silence_gate is not None:
            self._silence_gate.reset()
        return turn.paused

    async def cancel(self) -> bool:
        """Abandon the live turn and return to listening."""
        turn = self._turn
        if turn is None:
            return False

        logger.info("Cancelling turn %d (%s)", turn.turn_id, turn.state.value)
        was_recording = turn.state == TurnState.RECORDING
        await self._cleanup_turn_resources(turn)
        if was_recording:
            turn.stop_reason = StopReason.CANCELLED
            await safe_cleanup(self._recorder.stop_recording, self._arbiter.request_recorder_stop)
        self._finish_turn(turn)
        await self._resume_listening()
        return True

    # ------------------------------------------------------------------
    # Recorder callbacks
    # ------------------------------------------------------------------

    async def on_recording_started(self, path: str) -> None:
        turn = self._turn
        if turn is not None:
            if turn.audio_file_path == path:
                return
            if turn.state == TurnState.RECORDING:
                logger.warning("Recorder restarted on %s during turn %d", path, turn.turn_id)
                return
            # Only the live turn may capture
            logger.warning("Recorder started %s during turn %d (%s), stopping it",
                           path, turn.turn_id, turn.state.value)
            await self._recorder.stop_recording()
            return

        # Started outside the front end (e.g. from a UI): adopt it as a turn
        await self._arbiter.on_external_recording_started()
        self._turn_counter += 1
        turn = ConversationTurn(
            turn_id=self._turn_counter,
            trigger=TurnTrigger.USER_INTERFACE,
            audio_file_path=path,
        )
        self._turn = turn
        self._set_state(turn, TurnState.RECORDING)
        self._enable_silence_gate()
        self._events.emit(LifecycleEvent.RECORDING_STARTED, path=path,
                          trigger=turn.trigger.value)

    async def on_amplitude(self, sample: AmplitudeSample) -> None:
        turn = self._turn
        if turn is None or turn.state != TurnState.RECORDING or turn.paused:
            return
        if self._silence_gate is None:
            return
        if self._silence_gate.check(sample.amplitude, sample.elapsed_ms):
            logger.info("Silence detected at %dms", sample.elapsed_ms)
            await self.stop_recording(StopReason.SILENCE)

    async def on_recording_finished(self, result: RecordingResult) -> None:
        turn = self._turn
        if turn is None or turn.state != TurnState.RECORDING or result.file_path != turn.audio_file_path:
            await self._handle_orphan_recording_end()
            return

        self._disable_silence_gate()
        await self._arbiter.request_recorder_stop()
        self._events.emit(LifecycleEvent.RECORDING_STOPPED, file=result.file_path,
                          duration_ms=result.duration_ms)

        if result.is_empty:
            await self._fail_turn(turn, EmptyRecording(f"Recording file is empty: {result.file_path}"))
            return

        self._set_state(turn, TurnState.UPLOADING)
        self._upload_task = asyncio.create_task(
            self._run_upload(turn.turn_id, result.file_path),
            name=f"upload-turn-{turn.turn_id}",
        )

    async def on_recording_error(self, error: Exception) -> None:
        turn = self._turn
        if turn is None or turn.state != TurnState.RECORDING:
            await self._handle_orphan_recording_end()
            return

        if isinstance(error, StorageExhausted):
            logger.warning("Storage exhausted, recording stopped")
        else:
            logger.error("Recording failed: %s", error)

        self._disable_silence_gate()
        await self._arbiter.request_recorder_stop()
        self._events.emit(LifecycleEvent.RECORDING_STOPPED, file=turn.audio_file_path,
                          error=str(error))
        await self._fail_turn(turn, error)
        if not isinstance(error, VoiceFrontendError):
            raise error

    async def _handle_orphan_recording_end(self) -> None:
        if self._turn is None and self._arbiter.is_recording:
            await self._arbiter.on_external_recording_stopped()
            await self._resume_listening()
        else:
            logger.debug("Ignoring stale recording event")

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def _run_upload(self, turn_id: int, file_path: str) -> None:
        try:
            result = await self._uploader.upload(file_path)
        except asyncio.CancelledError:
            logger.info("Upload for turn %d cancelled", turn_id)
            raise
        except Exception as e:
            self._dispatcher.post(self.on_upload_failed, turn_id, e)
        else:
            self._dispatcher.post(self.on_upload_completed, turn_id, result)

    async def on_upload_completed(self, turn_id: int, result: UploadResult) -> None:
        turn = self._turn
        if turn is None or turn.turn_id != turn_id or turn.state != TurnState.UPLOADING:
            logger.debug("Discarding stale upload result for turn %d", turn_id)
            Path(result.audio_path).unlink(missing_ok=True)
            return

        self._upload_task = None
        turn.should_continue = result.should_continue
        turn.response_audio_path = result.audio_path
        logger.info("Response received (continue=%s)", result.should_continue)
        if result.transcription:
            logger.info("Transcription: %s", result.transcription)
        self._events.emit(
            LifecycleEvent.RESPONSE_RECEIVED,
            transcription=result.transcription,
            response_text=result.response_text,
            should_continue=result.should_continue,
        )

        if not self._keep_recordings and turn.audio_file_path:
            Path(turn.audio_file_path).unlink(missing_ok=True)

        self._set_state(turn, TurnState.PLAYING)
        try:
            await self._player.play(result.audio_path)
        except PlaybackFailed as e:
            await self._fail_turn(turn, e)

    async def on_upload_failed(self, turn_id: int, error: Exception) -> None:
        turn = self._turn
        if turn is None or turn.turn_id != turn_id or turn.state != TurnState.UPLOADING:
            logger.debug("Discarding stale upload failure for turn %d", turn_id)
            return

        self._upload_task = None
        if isinstance(error, UploadFailed):
            logger.warning("Upload failed: %s", error)
            await self._fail_turn(turn, error)
            return

        await self._fail_turn(turn, UploadFailed(str(error)))
        raise error

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    async def on_playback_completed(self) -> None:
        turn = self._turn
        if turn is None or turn.state != TurnState.PLAYING:
            return

        should_continue = turn.should_continue
        await self._cleanup_turn_resources(turn)
        self._completed_turns += 1
        self._events.emit(LifecycleEvent.TURN_COMPLETED, turn_id=turn.turn_id,
                          should_continue=should_continue)
        self._finish_turn(turn)

        if should_continue:
            # Stay in the dialogue; the wake word is not re-armed in between
            logger.info("Continuing conversation")
            await self.begin_turn(TurnTrigger.CONTINUATION)
        else:
            await self._resume_listening()

    async def on_playback_error(self, code: Optional[int] = None) -> None:
        turn = self._turn
        if turn is None or turn.state != TurnState.PLAYING:
            return
        await self._fail_turn(turn, PlaybackFailed(f"Playback error (code {code})", code=code))

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """
        Cancel the network call, stop playback and capture, drop the turn.

        Does not touch the arbiter; the service releases the microphone next.
        """
        turn = self._turn

        async def stop_capture():
            if self._recorder.is_recording:
                await self._recorder.stop_recording()

        await safe_cleanup(self._cancel_upload, self._player.stop, stop_capture)
        if turn is not None:
            await self._cleanup_turn_resources(turn)
            self._finish_turn(turn)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _start_recording(self, turn: ConversationTurn) -> bool:
        try:
            acquired = await self._arbiter.request_recorder_start(self._permission_check)
        except VoiceFrontendError as e:
            await self._fail_turn(turn, e)
            return False

        if not acquired:
            # Another recording already holds the microphone
            self._finish_turn(turn)
            return False

        self._recordings_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        turn.audio_file_path = str(self._recordings_dir / f"recording_{stamp}_{turn.turn_id}.wav")

        try:
            await self._recorder.start_recording(
                turn.audio_file_path, self._channel_count, self._sample_rate, self._bitrate
            )
        except VoiceFrontendError as e:
            await self._arbiter.request_recorder_stop()
            await self._fail_turn(turn, e)
            return False
        except Exception:
            await self._arbiter.request_recorder_stop()
            self._finish_turn(turn)
            raise

        self._set_state(turn, TurnState.RECORDING)
        self._enable_silence_gate()
        self._events.emit(LifecycleEvent.RECORDING_STARTED, path=turn.audio_file_path,
                          trigger=turn.trigger.value)
        return True

    async def _fail_turn(self, turn: ConversationTurn, error: Exception) -> None:
        """Return to the known-safe state: IDLE with listening resumed."""
        await self._cleanup_turn_resources(turn)
        self._failed_turns += 1
        self._finish_turn(turn)

        user_message = getattr(error, 'user_message', None) or "Something went wrong"
        category = getattr(error, 'category', None)
        self._events.emit(
            LifecycleEvent.TURN_ERROR,
            message=user_message,
            category=category.value if category else None,
        )
        if self._error_handler is not None:
            await self._error_handler.handle_error(ComponentError(
                component="orchestrator",
                severity=ErrorSeverity.WARNING,
                message=f"Turn {turn.turn_id} failed: {error}",
                exception=error,
            ))

        await self._resume_listening()

    async def _resume_listening(self) -> None:
        try:
            await self._arbiter.request_listener_start()
        except MicrophoneBusy as e:
            logger.warning("Cannot resume listening: %s", e)

    async def _cleanup_turn_resources(self, turn: ConversationTurn) -> None:
        """Idempotent; safe on every exit path."""

        async def delete_response_audio():
            path = turn.response_audio_path
            turn.response_audio_path = None
            if path:
                Path(path).unlink(missing_ok=True)

        await safe_cleanup(self._cancel_upload, self._player.stop, delete_response_audio)
        turn.should_continue = False
        self._disable_silence_gate()

    async def _cancel_upload(self) -> None:
        task = self._upload_task
        self._upload_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _finish_turn(self, turn: ConversationTurn) -> None:
        if self._turn is turn:
            self._set_state(turn, TurnState.IDLE)
            self._turn = None

    def _set_state(self, turn: ConversationTurn, state: TurnState) -> None:
        if turn.state == state:
            return
        previous = turn.state
        turn.state = state
        logger.info("%s → %s", previous.value, state.value, extra={'turn': turn.turn_id})
        self._events.emit(LifecycleEvent.TURN_STATE_CHANGED, turn_id=turn.turn_id,
                          previous=previous.value, state=state.value)

    def _enable_silence_gate(self) -> None:
        if self._silence_gate is not None:
            self._silence_gate.enable()

    def _disable_silence_gate(self) -> None:
        if self._silence_gate is not None:
            self._silence_gate.disable()

    def get_status(self) -> Dict[str, Any]:
        turn = self._turn
        return {
            'state': self.state.value,
            'turn_id': turn.turn_id if turn else None,
            'trigger': turn.trigger.value if turn else None,
            'paused': turn.paused if turn else False,
            'upload_in_flight': self._upload_task is not None and not self._upload_task.done(),
            'completed_turns': self._completed_turns,
            'failed_turns': self._failed_turns,
        }
