"""
Abstract interface for the keep-awake hold.
"""

from abc import ABC, abstractmethod


class WakeLock(ABC):
    """Keeps the host awake while the service runs."""

    @abstractmethod
    def acquire(self) -> None:
        pass

    @abstractmethod
    def release(self) -> None:
        """Idempotent."""
        pass

    @property
    @abstractmethod
    def held(self) -> bool:
        pass
