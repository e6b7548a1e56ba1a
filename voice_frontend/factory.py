"""
Factory for creating collaborator instances based on configuration.
"""

from typing import Dict, Any

from .interfaces import (
    AudioPlayer,
    AudioRecorder,
    AudioUploader,
    PressEventSource,
    WakeLock,
    WakeWordEngine
)
from .providers import (
    CaffeinateWakeLock,
    HttpUploader,
    KeyPressSource,
    NullPressSource,
    NullWakeLock,
    OpenWakeWordEngine,
    SoundDeviceRecorder,
    SubprocessPlayer
)


class ProviderFactory:
    """Factory for creating collaborator instances."""

    WAKEWORD_PROVIDERS = {
        'openwakeword': OpenWakeWordEngine,
    }

    RECORDER_PROVIDERS = {
        'sounddevice': SoundDeviceRecorder,
    }

    UPLOAD_PROVIDERS = {
        'http': HttpUploader,
    }

    PLAYBACK_PROVIDERS = {
        'subprocess': SubprocessPlayer,
    }

    PRESS_SOURCE_PROVIDERS = {
        'pynput': KeyPressSource,
        'none': NullPressSource,
    }

    WAKE_LOCK_PROVIDERS = {
        'caffeinate': CaffeinateWakeLock,
        'none': NullWakeLock,
    }

    @staticmethod
    def _create(kind: str, registry: Dict[str, type], provider_name: str, config: Dict[str, Any]):
        if provider_name not in registry:
            available = ', '.join(registry.keys())
            raise ValueError(f"Unsupported {kind} provider: {provider_name}. Available: {available}")
        return registry[provider_name](config)

    @classmethod
    def create_wakeword_engine(cls, provider_name: str, config: Dict[str, Any]) -> WakeWordEngine:
        """
        Create a wake word engine.

        Raises:
            ValueError: If provider name is not supported
        """
        return cls._create('wake word', cls.WAKEWORD_PROVIDERS, provider_name, config)

    @classmethod
    def create_recorder(cls, provider_name: str, config: Dict[str, Any]) -> AudioRecorder:
        return cls._create('recorder', cls.RECORDER_PROVIDERS, provider_name, config)

    @classmethod
    def create_uploader(cls, provider_name: str, config: Dict[str, Any]) -> AudioUploader:
        return cls._create('upload', cls.UPLOAD_PROVIDERS, provider_name, config)

    @classmethod
    def create_player(cls, provider_name: str, config: Dict[str, Any]) -> AudioPlayer:
        return cls._create('playback', cls.PLAYBACK_PROVIDERS, provider_name, config)

    @classmethod
    def create_press_source(cls, provider_name: str, config: Dict[str, Any]) -> PressEventSource:
        return cls._create('press source', cls.PRESS_SOURCE_PROVIDERS, provider_name, config)

    @classmethod
    def create_wake_lock(cls, provider_name: str, config: Dict[str, Any]) -> WakeLock:
        return cls._create('wake lock', cls.WAKE_LOCK_PROVIDERS, provider_name, config)

    @classmethod
    def create_all_providers(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create every collaborator from a ``get_framework_config`` dictionary.

        Returns:
            Dictionary keyed by section name
        """
        creators = {
            'wakeword': cls.create_wakeword_engine,
            'recorder': cls.create_recorder,
            'upload': cls.create_uploader,
            'playback': cls.create_player,
            'press_source': cls.create_press_source,
            'wake_lock': cls.create_wake_lock,
        }
        providers = {}
        for section, create in creators.items():
            selection = config.get(section)
            if selection is None:
                continue
            providers[section] = create(selection['provider'], selection.get('config', {}))
        return providers
