"""
Concrete collaborators for the voice front end.
"""

from .wakeword import OpenWakeWordEngine
from .recorder import SoundDeviceRecorder
from .upload import HttpUploader
from .playback import SubprocessPlayer
from .keys import KeyPressSource, NullPressSource
from .wake_lock import NullWakeLock, CaffeinateWakeLock

__all__ = [
    'OpenWakeWordEngine',
    'SoundDeviceRecorder',
    'HttpUploader',
    'SubprocessPlayer',
    'KeyPressSource',
    'NullPressSource',
    'NullWakeLock',
    'CaffeinateWakeLock'
]
