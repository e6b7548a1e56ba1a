"""
Data models for the voice front end.
"""

from .data_models import (
    MicrophoneOwner,
    TurnState,
    TurnTrigger,
    StopReason,
    LifecycleEvent,
    ConversationTurn,
    AmplitudeSample,
    RecordingResult,
    UploadResult,
    FrontendEvent,
    MicrophoneTransition
)

__all__ = [
    'MicrophoneOwner',
    'TurnState',
    'TurnTrigger',
    'StopReason',
    'LifecycleEvent',
    'ConversationTurn',
    'AmplitudeSample',
    'RecordingResult',
    'UploadResult',
    'FrontendEvent',
    'MicrophoneTransition'
]
