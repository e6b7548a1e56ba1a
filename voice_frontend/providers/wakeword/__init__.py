from .openwakeword_provider import OpenWakeWordEngine

__all__ = ['OpenWakeWordEngine']
