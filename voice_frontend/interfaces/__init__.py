"""
Abstract interfaces for the collaborators the front end drives.
"""

from .wake_word import WakeWordEngine
from .recorder import AudioRecorder
from .uploader import AudioUploader
from .player import AudioPlayer
from .press_source import PressEventSource
from .wake_lock import WakeLock

__all__ = [
    'WakeWordEngine',
    'AudioRecorder',
    'AudioUploader',
    'AudioPlayer',
    'PressEventSource',
    'WakeLock'
]
