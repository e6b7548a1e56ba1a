"""
Keep-awake holds for the lifetime of the service.
"""

import subprocess
from shutil import which
from typing import Dict, Any, Optional

from ..interfaces.wake_lock import WakeLock
from ..utils.logging_config import get_logger

logger = get_logger("service")


class NullWakeLock(WakeLock):
    """Tracks the hold without touching the host."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._held = False

    def acquire(self) -> None:
        self._held = True

    def release(self) -> None:
        self._held = False

    @property
    def held(self) -> bool:
        return self._held


class CaffeinateWakeLock(WakeLock):
    """macOS: runs ``caffeinate -i`` until released."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._process: Optional[subprocess.Popen] = None

    def acquire(self) -> None:
        if self.held:
            return
        binary = which("caffeinate")
        if not binary:
            logger.warning("caffeinate not available, continuing without wake lock")
            return
        self._process = subprocess.Popen(
            [binary, "-i"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        logger.debug("Wake lock acquired")

    def release(self) -> None:
        process = self._process
        self._process = None
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=1)
        except subprocess.TimeoutExpired:
            process.kill()
        logger.debug("Wake lock released")

    @property
    def held(self) -> bool:
        return self._process is not None and self._process.poll() is None
