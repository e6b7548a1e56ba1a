"""
Logging for the voice front end.

Every component logs through a child of the ``voice_frontend`` logger
(``voice_frontend.arbiter``, ``voice_frontend.orchestrator`` ...), so a single
noisy component can be turned up or down on its own:

    LOG_LEVEL=INFO VOICE_LOG_LEVELS="arbiter=DEBUG,silence=DEBUG"
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

ROOT_LOGGER_NAME = 'voice_frontend'

# Level tags for the console; files always get the bare level name
LEVEL_TAGS = {
    'DEBUG': ('🔍', '\033[36m'),
    'INFO': ('🎙️', '\033[32m'),
    'WARNING': ('⚠️', '\033[33m'),
    'ERROR': ('❌', '\033[31m'),
    'CRITICAL': ('💀', '\033[35m'),
}
RESET = '\033[0m'


class StructuredFormatter(logging.Formatter):
    """
    ``[12:00:01.250] [INFO    ] [arbiter     ] message``

    Records logged with a ``turn`` extra get a ``(turn N)`` suffix so the
    lines of one conversation turn can be grepped together.
    """

    def __init__(self, use_colors: bool = True, use_emojis: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.use_emojis = use_emojis

    def _level(self, levelname: str) -> str:
        emoji, color = LEVEL_TAGS.get(levelname, ('', ''))
        text = f"{levelname:8}"
        if self.use_emojis and emoji:
            text = f"{emoji} {text}"
        if self.use_colors and color and sys.stdout.isatty():
            text = f"{color}{text}{RESET}"
        return text

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        component = getattr(record, 'component', None) or record.name.rsplit('.', 1)[-1]

        line = f"[{stamp}] [{self._level(record.levelname)}] [{component:12}] {record.getMessage()}"
        turn = getattr(record, 'turn', None)
        if turn is not None:
            line += f" (turn {turn})"
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


class ComponentLogger(logging.LoggerAdapter):
    """Tags every record with its component name."""

    def __init__(self, component: str):
        super().__init__(logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}"), {'component': component})
        self.component = component

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs


def parse_component_levels(overrides: Optional[str]) -> Dict[str, int]:
    """
    Parse ``"arbiter=DEBUG,upload=WARNING"``.

    Raises:
        ValueError: on an entry without ``=`` or an unknown level name
    """
    levels: Dict[str, int] = {}
    for entry in (overrides or '').split(','):
        entry = entry.strip()
        if not entry:
            continue
        component, sep, level = entry.partition('=')
        if not sep:
            raise ValueError(f"Expected component=LEVEL, got '{entry}'")
        value = logging.getLevelName(level.strip().upper())
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level '{level}' for {component}")
        levels[component.strip()] = value
    return levels


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    use_colors: bool = True,
    use_emojis: bool = True,
    component_levels: Optional[str] = None
) -> logging.Logger:
    """
    Install console (and optional file) handlers on the package logger.

    Args:
        level: Package-wide level name
        log_file: Plain-text log file, parents created as needed
        use_colors: ANSI colours on a TTY console
        use_emojis: Emoji level tags on the console
        component_levels: Per-component overrides; defaults to ``VOICE_LOG_LEVELS``

    Returns:
        The ``voice_frontend`` logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.upper())
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter(use_colors=use_colors, use_emojis=use_emojis))
    root.addHandler(console)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter(use_colors=False, use_emojis=False))
        root.addHandler(file_handler)

    overrides = component_levels if component_levels is not None else os.getenv("VOICE_LOG_LEVELS")
    for component, component_level in parse_component_levels(overrides).items():
        logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}").setLevel(component_level)

    return root


def get_logger(component: str) -> ComponentLogger:
    """Logger for one component, e.g. ``get_logger("arbiter")``."""
    return ComponentLogger(component)
