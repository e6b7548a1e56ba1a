"""
Service lifecycle: builds the collaborators, wires every callback through the
serial dispatcher, and owns startup and shutdown ordering.
"""

import asyncio
from typing import Optional, Callable, Dict, Any

from .factory import ProviderFactory
from .models.data_models import LifecycleEvent, MicrophoneOwner, TurnTrigger
from .orchestrator import ConversationOrchestrator
from .providers.permissions import input_device_available
from .utils.error_handling import (
    ComponentError,
    EngineInitializationFailed,
    ErrorHandler,
    ErrorSeverity,
    safe_cleanup,
)
from .utils.event_bus import EventBus
from .utils.logging_config import get_logger
from .utils.microphone_arbiter import MicrophoneArbiter
from .utils.press_pattern import PressPatternDetector, WindowBoundary
from .utils.serial_dispatcher import SerialDispatcher
from .utils.silence_gate import SilenceGate
from .utils.tones import beep_error, beep_wake_detected

logger = get_logger("service")


class VoiceService:
    """
    Owns one arbiter, one orchestrator and their collaborators.

    Collaborators come from ``providers`` when given (keyed like the config
    sections: wakeword, recorder, upload, playback, press_source, wake_lock)
    and from the ProviderFactory otherwise.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        providers: Optional[Dict[str, Any]] = None,
        permission_check: Optional[Callable[[], bool]] = None
    ):
        self.config = config
        service_config = config.get('service', {})
        self._shutdown_on_engine_failure = bool(service_config.get('shutdown_on_engine_failure', True))
        self._confirmation_beep = bool(service_config.get('confirmation_beep', True))

        built = dict(providers or {})
        missing = {k: v for k, v in config.items()
                   if k in ('wakeword', 'recorder', 'upload', 'playback', 'press_source', 'wake_lock')
                   and k not in built}
        built.update(ProviderFactory.create_all_providers(missing))

        self.engine = built['wakeword']
        self.recorder = built['recorder']
        self.uploader = built['upload']
        self.player = built['playback']
        self.press_source = built.get('press_source')
        self.wake_lock = built.get('wake_lock')

        if permission_check is None and service_config.get('require_input_device', True):
            permission_check = input_device_available

        self.error_handler = ErrorHandler()
        self.events = EventBus()
        self.dispatcher = SerialDispatcher(name="frontend", on_error=self._on_dispatch_error)

        arbiter_config = config.get('arbiter', {})
        self.arbiter = MicrophoneArbiter(
            self.engine,
            events=self.events,
            settle_delay=float(arbiter_config.get('settle_delay', 0.1)),
            guard_delay=float(arbiter_config.get('guard_delay', 0.2)),
        )

        silence_config = config.get('silence', {})
        self.silence_gate: Optional[SilenceGate] = None
        if silence_config.get('enabled', True):
            self.silence_gate = SilenceGate(
                amplitude_threshold=int(silence_config.get('amplitude_threshold', 500)),
                duration_ms=float(silence_config.get('duration_ms', 2500)),
            )

        pattern_config = config.get('button_pattern', {})
        self._button_pattern_enabled = bool(pattern_config.get('enabled', True))
        self.press_detector = PressPatternDetector(
            required_count=int(pattern_config.get('required_count', 4)),
            window_ms=float(pattern_config.get('window_ms', 2000)),
            boundary=WindowBoundary(pattern_config.get('boundary', 'exclusive')),
        )

        self.orchestrator = ConversationOrchestrator(
            arbiter=self.arbiter,
            recorder=self.recorder,
            uploader=self.uploader,
            player=self.player,
            dispatcher=self.dispatcher,
            events=self.events,
            silence_gate=self.silence_gate,
            recording_config=config.get('recorder', {}).get('config', {}),
            permission_check=permission_check,
            error_handler=self.error_handler,
        )

        self.engine.set_detection_callback(lambda: self.dispatcher.post(self.on_wake_word))
        if self._confirmation_beep:
            self.events.subscribe(LifecycleEvent.TURN_ERROR, lambda event: beep_error())

        self._running = False
        self._stopping = False
        self._shutdown_requested = asyncio.Event()
        self._shutdown_reason: Optional[str] = None
        self._register_recovery_strategies()

    @property
    def is_running(self) -> bool:
        return self._running

    def _register_recovery_strategies(self):
        """Recoverable errors that escape a handler return the front end to IDLE + listening."""

        async def recover_to_idle(error: ComponentError):
            if not await self.orchestrator.cancel():
                if self.arbiter.owner == MicrophoneOwner.NONE:
                    await self.arbiter.request_listener_start()

        self.error_handler.register_recovery("dispatcher", recover_to_idle)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Acquire the wake lock, start the dispatcher, arm the wake word and the buttons.

        Raises:
            EngineInitializationFailed: when the engine cannot start and
                ``shutdown_on_engine_failure`` is set (the service is stopped first)
        """
        if self._running:
            return

        self._stopping = False
        self._shutdown_requested.clear()
        if self.wake_lock is not None:
            self.wake_lock.acquire()
        await self.dispatcher.start()
        self._running = True

        try:
            await self.dispatcher.submit(self.arbiter.request_listener_start)
        except EngineInitializationFailed as e:
            await self.error_handler.handle_error(ComponentError.from_exception("wakeword", e))
            if self._shutdown_on_engine_failure:
                await self.stop()
                raise
            logger.warning("Continuing without wake word listening")

        if self.press_source is not None and self._button_pattern_enabled:
            self.press_source.start(lambda now_ms: self.dispatcher.post(self.on_key_press, now_ms))

        logger.info("Voice front end started")

    async def stop(self) -> None:
        """
        Shutdown order: pending network call, player, microphone, wake lock.

        Every step runs even if an earlier one fails; the microphone always
        ends unowned.
        """
        if self._stopping or not self._running:
            return
        self._stopping = True
        logger.info("Stopping voice front end")

        if self.press_source is not None:
            self.press_source.stop()
        await self.dispatcher.stop()

        async def release_wake_lock():
            if self.wake_lock is not None:
                self.wake_lock.release()

        await safe_cleanup(
            self.orchestrator.shutdown,
            self.arbiter.release_all,
            self.uploader.close,
            release_wake_lock,
        )
        self.press_detector.reset()
        self._running = False
        logger.info("Voice front end stopped")

    def request_shutdown(self, reason: str = "requested") -> None:
        """Ask ``run_forever`` to stop. Safe from any handler."""
        self._shutdown_reason = reason
        self._shutdown_requested.set()

    async def run_forever(self) -> None:
        await self.start()
        try:
            await self._shutdown_requested.wait()
            logger.info("Shutdown requested: %s", self._shutdown_reason)
        finally:
            await self.stop()

    # ------------------------------------------------------------------
    # Serialized handlers
    # ------------------------------------------------------------------

    async def on_wake_word(self) -> None:
        if not self.orchestrator.is_idle:
            logger.info("Wake word ignored while %s", self.orchestrator.state.value)
            return
        logger.info("Wake word detected")
        started = await self.orchestrator.begin_turn(TurnTrigger.WAKE_WORD)
        if started and self._confirmation_beep:
            beep_wake_detected()

    async def on_key_press(self, now_ms: float) -> None:
        if self.press_detector.add_press(now_ms):
            await self.orchestrator.toggle_recording(TurnTrigger.BUTTON_PATTERN)

    async def _on_dispatch_error(self, error: Exception) -> None:
        component_error = ComponentError.from_exception("dispatcher", error)
        recovered = await self.error_handler.handle_error(component_error)
        if recovered or component_error.severity != ErrorSeverity.FATAL:
            return
        if isinstance(error, EngineInitializationFailed) and not self._shutdown_on_engine_failure:
            logger.warning("Wake word engine unavailable, continuing with button triggers only")
            return
        self.request_shutdown(f"fatal error: {error}")

    # ------------------------------------------------------------------
    # UI entry points (never call from inside a handler)
    # ------------------------------------------------------------------

    async def toggle_recording(self) -> bool:
        return await self.dispatcher.submit(self.orchestrator.toggle_recording,
                                            TurnTrigger.USER_INTERFACE)

    async def toggle_pause(self) -> bool:
        return await self.dispatcher.submit(self.orchestrator.toggle_pause)

    async def cancel_turn(self) -> bool:
        return await self.dispatcher.submit(self.orchestrator.cancel)

    def get_status(self) -> Dict[str, Any]:
        return {
            'running': self._running,
            'microphone': self.arbiter.get_status(),
            'conversation': self.orchestrator.get_status(),
            'dispatcher': {
                'running': self.dispatcher.is_running,
                'pending': self.dispatcher.pending,
            },
            'wake_lock': self.wake_lock.held if self.wake_lock is not None else None,
            'errors': self.error_handler.get_error_summary(),
        }
