"""
Media volume key listener built on pynput.
"""

import time
from typing import Dict, Any, Optional, Set

from ...interfaces.press_source import PressCallback, PressEventSource
from ...utils.logging_config import get_logger

logger = get_logger("buttons")

DEFAULT_KEYS = ("media_volume_up", "media_volume_down")


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class KeyPressSource(PressEventSource):
    """
    Forwards key-downs of the monitored keys with a monotonic timestamp.

    Key names are ``pynput.keyboard.Key`` members. Auto-repeat while a key is
    held produces a single press.
    """

    def __init__(self, config: Dict[str, Any]):
        self.key_names = tuple(config.get('monitored_keys', DEFAULT_KEYS))
        self._listener = None
        self._held: Set[Any] = set()
        self._on_press: Optional[PressCallback] = None

    def start(self, on_press: PressCallback) -> None:
        if self._listener is not None:
            return

        from pynput import keyboard

        monitored = set()
        for name in self.key_names:
            key = getattr(keyboard.Key, name, None)
            if key is None:
                logger.warning("Unknown key name: %s", name)
                continue
            monitored.add(key)

        self._on_press = on_press

        def handle_press(key):
            if key not in monitored or key in self._held:
                return
            self._held.add(key)
            self._on_press(monotonic_ms())

        def handle_release(key):
            self._held.discard(key)

        self._listener = keyboard.Listener(on_press=handle_press, on_release=handle_release)
        self._listener.daemon = True
        self._listener.start()
        logger.info("Listening for %s", ", ".join(self.key_names))

    def stop(self) -> None:
        listener = self._listener
        self._listener = None
        self._held.clear()
        if listener is not None:
            listener.stop()


class NullPressSource(PressEventSource):
    """For hosts without a keyboard hook."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        pass

    def start(self, on_press: PressCallback) -> None:
        pass

    def stop(self) -> None:
        pass
