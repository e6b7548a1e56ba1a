from .sounddevice_recorder import SoundDeviceRecorder

__all__ = ['SoundDeviceRecorder']
