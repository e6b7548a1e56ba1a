"""
Common data structures for the voice front end.
"""

import time
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum, auto


class MicrophoneOwner(Enum):
    """Who currently holds the microphone."""
    NONE = auto()
    WAKE_WORD_LISTENER = auto()
    RECORDER = auto()


class TurnState(str, Enum):
    """Conversation turn states."""
    IDLE = "idle"
    RECORDING = "recording"
    UPLOADING = "uploading"
    PLAYING = "playing"


class TurnTrigger(str, Enum):
    """What asked for a new turn or a recording toggle."""
    WAKE_WORD = "wake_word"
    BUTTON_PATTERN = "button_pattern"
    USER_INTERFACE = "user_interface"
    CONTINUATION = "continuation"


class StopReason(str, Enum):
    """Why a recording was stopped."""
    SILENCE = "silence"
    BUTTON_PATTERN = "button_pattern"
    USER_INTERFACE = "user_interface"
    CANCELLED = "cancelled"


class LifecycleEvent(str, Enum):
    """Notifications the front end publishes for UI and notification layers."""
    RECORDING_STARTED = "recording_started"
    RECORDING_STOPPED = "recording_stopped"
    LISTENING_RESUMED = "listening_resumed"
    LISTENING_PAUSED = "listening_paused"
    TURN_ERROR = "turn_error"
    TURN_COMPLETED = "turn_completed"
    TURN_STATE_CHANGED = "turn_state_changed"
    RESPONSE_RECEIVED = "response_received"


@dataclass
class ConversationTurn:
    """One record, upload, play, decide cycle."""
    turn_id: int
    trigger: TurnTrigger
    state: TurnState = TurnState.IDLE
    audio_file_path: Optional[str] = None
    should_continue: bool = False
    response_audio_path: Optional[str] = None
    paused: bool = False
    stop_reason: Optional[StopReason] = None
    started_at: float = field(default_factory=lambda: datetime.now().timestamp())


@dataclass
class AmplitudeSample:
    """Periodic level reading from the active recorder."""
    elapsed_ms: int
    amplitude: int


@dataclass
class RecordingResult:
    """Terminal event of a finished recording."""
    file_path: str
    duration_ms: int = 0
    size_bytes: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.size_bytes <= 0


@dataclass
class UploadResult:
    """Successful round trip to the remote assistant."""
    audio_path: str
    should_continue: bool = False
    transcription: Optional[str] = None
    response_text: Optional[str] = None
    content_type: Optional[str] = None


@dataclass
class FrontendEvent:
    """Payload delivered to lifecycle subscribers."""
    kind: LifecycleEvent
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())

    def __str__(self) -> str:
        return f"{self.kind.value} {self.data}" if self.data else self.kind.value


@dataclass
class MicrophoneTransition:
    """Record of a microphone ownership change."""
    from_owner: MicrophoneOwner
    to_owner: MicrophoneOwner
    reason: str
    monotonic: float = field(default_factory=time.monotonic)
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
