"""
Abstract interface for hardware key-down events.
"""

from abc import ABC, abstractmethod
from typing import Callable

PressCallback = Callable[[float], None]


class PressEventSource(ABC):
    """Delivers monitored key-downs as millisecond timestamps."""

    @abstractmethod
    def start(self, on_press: PressCallback) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass
