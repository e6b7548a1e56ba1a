# Utils package

from .silence_gate import SilenceGate
from .press_pattern import PressPatternDetector, WindowBoundary
from .microphone_arbiter import MicrophoneArbiter
from .serial_dispatcher import SerialDispatcher
from .event_bus import EventBus, Subscription
from .logging_config import setup_logging, get_logger

__all__ = [
    "SilenceGate",
    "PressPatternDetector",
    "WindowBoundary",
    "MicrophoneArbiter",
    "SerialDispatcher",
    "EventBus",
    "Subscription",
    "setup_logging",
    "get_logger",
]
