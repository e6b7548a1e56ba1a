"""
Voice Front End - microphone arbitration and conversation turn-taking.

Shares one microphone between:
- A continuously listening wake word engine (openwakeword)
- An on-demand recorder, stopped by sustained silence or a volume-key pattern
- A remote assistant round trip (upload, play the spoken reply, maybe continue)

Usage:
    from voice_frontend.config import get_framework_config
    from voice_frontend.service import VoiceService

    service = VoiceService(get_framework_config())
    await service.run_forever()
"""

from .service import VoiceService
from .orchestrator import ConversationOrchestrator
from .factory import ProviderFactory
from .config import get_framework_config
from . import interfaces
from . import models
from . import providers

__version__ = "1.0.0"

__all__ = [
    'VoiceService',
    'ConversationOrchestrator',
    'ProviderFactory',
    'get_framework_config',
    'interfaces',
    'models',
    'providers'
]
