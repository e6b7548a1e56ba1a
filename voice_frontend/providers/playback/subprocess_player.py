"""
Response playback through an external command-line player.
"""

import asyncio
import shlex
import subprocess
import sys
from shutil import which
from typing import Dict, Any, List, Optional

from ...interfaces.player import AudioPlayer
from ...utils.error_handling import PlaybackFailed
from ...utils.logging_config import get_logger

logger = get_logger("playback")

# Tried in order when no command is configured
PLAYER_CANDIDATES = [
    ["afplay"],
    ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"],
    ["mpg123", "-q"],
]


def detect_player_command() -> Optional[List[str]]:
    """First available player for this platform, or None."""
    candidates = PLAYER_CANDIDATES if sys.platform == "darwin" else PLAYER_CANDIDATES[1:]
    for command in candidates:
        if which(command[0]):
            return list(command)
    return None


class SubprocessPlayer(AudioPlayer):
    """
    Starts the player process and polls it from a monitor task.

    Exit code 0 reports completion, any other code reports ``error(code)``.
    A stopped playback reports nothing.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__()
        command = config.get('command')
        if isinstance(command, str):
            command = shlex.split(command)
        self.command: Optional[List[str]] = list(command) if command else detect_player_command()
        self.poll_interval: float = float(config.get('poll_interval', 0.05))
        self.stop_timeout: float = float(config.get('stop_timeout', 0.5))
        self._process: Optional[subprocess.Popen] = None
        self._monitor: Optional[asyncio.Task] = None

    @property
    def is_playing(self) -> bool:
        process = self._process
        return process is not None and process.poll() is None

    async def play(self, file_path: str) -> None:
        await self.stop()
        if not self.command:
            raise PlaybackFailed("No audio player command available")

        try:
            process = subprocess.Popen(
                [*self.command, file_path],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise PlaybackFailed(f"'{self.command[0]}' not found") from e
        except OSError as e:
            raise PlaybackFailed(f"Failed to start '{self.command[0]}': {e}") from e

        self._process = process
        self._monitor = asyncio.create_task(self._watch(process), name="playback-monitor")
        logger.info("Playing %s", file_path)

    async def _watch(self, process: subprocess.Popen) -> None:
        while process.poll() is None:
            await asyncio.sleep(self.poll_interval)

        if self._process is not process:
            # Replaced or stopped
            return
        self._process = None
        self._monitor = None

        code = process.returncode
        if code == 0:
            logger.debug("Playback completed")
            self._emit_completed()
        else:
            logger.warning("Player exited with code %s", code)
            self._emit_error(code)

    async def stop(self) -> None:
        process = self._process
        monitor = self._monitor
        self._process = None
        self._monitor = None

        if monitor is not None and not monitor.done():
            monitor.cancel()
            try:
                await monitor
            except asyncio.CancelledError:
                pass

        if process is not None and process.poll() is None:
            process.terminate()
            try:
                await asyncio.to_thread(process.wait, self.stop_timeout)
            except subprocess.TimeoutExpired:
                process.kill()
            logger.info("Playback stopped")
