"""
Exclusive microphone ownership between the wake word listener and the recorder.
"""

import asyncio
from typing import Optional, Callable, Dict, Any, List

from ..interfaces.wake_word import WakeWordEngine
from ..models.data_models import LifecycleEvent, MicrophoneOwner, MicrophoneTransition
from .error_handling import (
    EngineError,
    EngineInitializationFailed,
    MicrophoneBusy,
    PermissionDenied,
)
from .event_bus import EventBus
from .logging_config import get_logger

logger = get_logger("arbiter")


class MicrophoneArbiter:
    """
    Owns the answer to "who may use the microphone right now".

    Rules:
    - At most one owner at a time
    - Listener and recorder never hand over directly; ownership passes
      through NONE, and every release waits out the settle delay while
      still holding the lock, so nobody can acquire during it
    - Recorder acquisition first stops the listener, then waits an extra
      guard delay, then rechecks state before taking the microphone
    """

    _VALID_TRANSITIONS = {
        MicrophoneOwner.NONE: [MicrophoneOwner.WAKE_WORD_LISTENER, MicrophoneOwner.RECORDER],
        MicrophoneOwner.WAKE_WORD_LISTENER: [MicrophoneOwner.NONE],
        MicrophoneOwner.RECORDER: [MicrophoneOwner.NONE],
    }

    def __init__(
        self,
        engine: WakeWordEngine,
        events: Optional[EventBus] = None,
        settle_delay: float = 0.1,
        guard_delay: float = 0.2,
        max_history: int = 100
    ):
        if settle_delay < 0 or guard_delay < 0:
            raise ValueError("settle_delay and guard_delay must be >= 0")
        self._engine = engine
        self._events = events
        self.settle_delay = settle_delay
        self.guard_delay = guard_delay
        self._owner = MicrophoneOwner.NONE
        self._lock = asyncio.Lock()
        self._history: List[MicrophoneTransition] = []
        self._max_history = max_history

    @property
    def owner(self) -> MicrophoneOwner:
        return self._owner

    @property
    def is_listening(self) -> bool:
        return self._owner == MicrophoneOwner.WAKE_WORD_LISTENER

    @property
    def is_recording(self) -> bool:
        return self._owner == MicrophoneOwner.RECORDER

    # ------------------------------------------------------------------
    # Listener
    # ------------------------------------------------------------------

    async def request_listener_start(self) -> None:
        """
        Give the microphone to the wake word listener.

        No-op if the listener already owns it.

        Raises:
            MicrophoneBusy: the recorder owns the microphone
            EngineInitializationFailed: the engine could not start (not retried)
        """
        async with self._lock:
            if self._owner == MicrophoneOwner.WAKE_WORD_LISTENER:
                return
            if self._owner == MicrophoneOwner.RECORDER:
                raise MicrophoneBusy("Recorder owns the microphone")

            try:
                await self._engine.start()
            except EngineError as e:
                logger.error("Wake word engine failed to start: %s", e)
                raise EngineInitializationFailed(str(e)) from e

            self._transition(MicrophoneOwner.WAKE_WORD_LISTENER, "listener_start")

        self._emit(LifecycleEvent.LISTENING_RESUMED)

    async def request_listener_stop(self) -> bool:
        """
        Stop the listener and wait for the hardware to settle.

        Returns:
            True if the listener was released, False if it was not the owner
        """
        async with self._lock:
            if self._owner != MicrophoneOwner.WAKE_WORD_LISTENER:
                return False
            await self._stop_engine()
            self._transition(MicrophoneOwner.NONE, "listener_stop")
            await self._settle()

        self._emit(LifecycleEvent.LISTENING_PAUSED)
        return True

    # ------------------------------------------------------------------
    # Recorder
    # ------------------------------------------------------------------

    async def request_recorder_start(
        self,
        permission_check: Optional[Callable[[], bool]] = None
    ) -> bool:
        """
        Give the microphone to the recorder.

        Stops the listener (including its settle delay), waits the guard
        delay, then rechecks. The caller starts the capture collaborator
        only after this returns True.

        Returns:
            True if the recorder now owns the microphone, False if a
            recording was already active (double trigger)

        Raises:
            MicrophoneBusy: the listener was re-armed during the guard delay
            PermissionDenied: ``permission_check`` returned False
        """
        if self._owner == MicrophoneOwner.RECORDER:
            logger.info("Recorder already active, ignoring start request")
            return False

        await self.request_listener_stop()
        await asyncio.sleep(self.guard_delay)

        async with self._lock:
            if self._owner == MicrophoneOwner.RECORDER:
                logger.warning("Recording started during guard delay, aborting duplicate request")
                return False
            if self._owner == MicrophoneOwner.WAKE_WORD_LISTENER:
                raise MicrophoneBusy("Listener re-armed before recorder could acquire")
            if permission_check is not None and not permission_check():
                raise PermissionDenied("Capture permission not granted")

            self._transition(MicrophoneOwner.RECORDER, "recorder_start")
        return True

    async def request_recorder_stop(self) -> bool:
        """
        Release the microphone from the recorder and wait for the hardware to settle.

        Returns:
            True if the recorder was released, False if it was not the owner
        """
        async with self._lock:
            if self._owner != MicrophoneOwner.RECORDER:
                return False
            self._transition(MicrophoneOwner.NONE, "recorder_stop")
            await self._settle()
        return True

    async def on_external_recording_started(self) -> None:
        """A recording began without going through ``request_recorder_start``."""
        released_listener = False
        async with self._lock:
            if self._owner == MicrophoneOwner.RECORDER:
                return
            if self._owner == MicrophoneOwner.WAKE_WORD_LISTENER:
                await self._stop_engine()
                self._transition(MicrophoneOwner.NONE, "external_recording")
                await self._settle()
                released_listener = True
            self._transition(MicrophoneOwner.RECORDER, "external_recording_started")

        if released_listener:
            self._emit(LifecycleEvent.LISTENING_PAUSED)

    async def on_external_recording_stopped(self) -> None:
        """A recording ended without going through ``request_recorder_stop``."""
        await self.request_recorder_stop()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def release_all(self) -> MicrophoneOwner:
        """
        Force the owner back to NONE. Always succeeds.

        Returns:
            The owner held before the call
        """
        async with self._lock:
            previous = self._owner
            if previous == MicrophoneOwner.WAKE_WORD_LISTENER:
                await self._stop_engine()
            if previous != MicrophoneOwner.NONE:
                self._transition(MicrophoneOwner.NONE, "release_all")
        return previous

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _stop_engine(self) -> None:
        try:
            await self._engine.stop()
        except EngineError as e:
            # An invalid handle means the device is already gone
            logger.warning("Wake word stop failed (%s), treating microphone as released", e)

    async def _settle(self) -> None:
        if self.settle_delay > 0:
            logger.debug("Settling for %ss", self.settle_delay)
            await asyncio.sleep(self.settle_delay)

    def _transition(self, target: MicrophoneOwner, reason: str) -> None:
        if target not in self._VALID_TRANSITIONS[self._owner]:
            raise ValueError(f"Invalid transition: {self._owner.name} → {target.name}")

        transition = MicrophoneTransition(from_owner=self._owner, to_owner=target, reason=reason)
        self._history.append(transition)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        logger.info("Microphone: %s → %s (%s)", self._owner.name, target.name, reason)
        self._owner = target

    def _emit(self, kind: LifecycleEvent) -> None:
        if self._events is not None:
            self._events.emit(kind)

    def get_transition_history(self, last_n: int = 10) -> List[MicrophoneTransition]:
        return self._history[-last_n:]

    def get_status(self) -> Dict[str, Any]:
        return {
            'owner': self._owner.name,
            'settle_delay': self.settle_delay,
            'guard_delay': self.guard_delay,
            'history_size': len(self._history),
            'last_transition': self._history[-1] if self._history else None
        }
