"""
Error taxonomy and structured error handling with recovery strategies.
"""

import asyncio
import socket
import traceback
from dataclasses import dataclass, field
from enum import Enum
from collections import Counter, deque
from typing import Optional, Callable, Dict, Any, Deque, List
from datetime import datetime

from .logging_config import get_logger

logger = get_logger("errors")


class ErrorCategory(str, Enum):
    """User-facing error categories."""
    PERMISSION_DENIED = "permission_denied"
    ENGINE_INITIALIZATION_FAILED = "engine_initialization_failed"
    MICROPHONE_BUSY = "microphone_busy"
    UPLOAD_FAILED = "upload_failed"
    PLAYBACK_FAILED = "playback_failed"
    STORAGE_EXHAUSTED = "storage_exhausted"
    UNCLASSIFIED = "unclassified"


class VoiceFrontendError(Exception):
    """Base class for every classified front-end failure."""

    category = ErrorCategory.UNCLASSIFIED
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, *, user_message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.user_message = user_message or self.default_message


class PermissionDenied(VoiceFrontendError):
    category = ErrorCategory.PERMISSION_DENIED
    default_message = "Microphone permission required"


class EngineInitializationFailed(VoiceFrontendError):
    category = ErrorCategory.ENGINE_INITIALIZATION_FAILED
    default_message = "Wake word engine failed to start"


class MicrophoneBusy(VoiceFrontendError):
    """Requested owner conflicts with the current one; retry after release."""
    category = ErrorCategory.MICROPHONE_BUSY
    default_message = "Microphone is busy"


class UploadFailed(VoiceFrontendError):
    category = ErrorCategory.UPLOAD_FAILED
    default_message = "Upload failed"

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None,
                 user_message: Optional[str] = None):
        super().__init__(message, user_message=user_message)
        self.status_code = status_code


class PlaybackFailed(VoiceFrontendError):
    category = ErrorCategory.PLAYBACK_FAILED
    default_message = "Playback error"

    def __init__(self, message: Optional[str] = None, *, code: Optional[int] = None,
                 user_message: Optional[str] = None):
        super().__init__(message, user_message=user_message)
        self.code = code


class StorageExhausted(VoiceFrontendError):
    category = ErrorCategory.STORAGE_EXHAUSTED
    default_message = "No storage space available"


class EngineError(Exception):
    """Raised by a wake-word engine when it cannot start or run."""


def describe_network_error(exc: BaseException) -> str:
    """Map a transport failure to a short user message."""
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return "Connection timeout"

    cause: Optional[BaseException] = exc
    while cause is not None:
        if isinstance(cause, socket.gaierror):
            return "No internet connection"
        os_error = getattr(cause, 'os_error', None)
        if isinstance(os_error, socket.gaierror):
            return "No internet connection"
        cause = cause.__cause__

    if isinstance(exc, (ConnectionError, OSError)):
        return "Server unavailable"
    return "Network error"


class ErrorSeverity(Enum):
    """Error severity levels."""
    WARNING = "warning"          # Log and continue
    RECOVERABLE = "recoverable"  # Attempt recovery
    FATAL = "fatal"              # Service must decide to stop


def classify_severity(exc: BaseException) -> ErrorSeverity:
    """Engine start failures and unclassified errors are fatal, the rest recover locally."""
    if isinstance(exc, EngineInitializationFailed):
        return ErrorSeverity.FATAL
    if isinstance(exc, VoiceFrontendError):
        return ErrorSeverity.RECOVERABLE
    return ErrorSeverity.FATAL


@dataclass
class ComponentError:
    """One failure as seen by the component that hit it."""
    component: str
    severity: ErrorSeverity
    message: str
    exception: Optional[BaseException] = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    traceback_str: Optional[str] = None

    def __post_init__(self):
        if self.exception is not None and self.traceback_str is None:
            self.traceback_str = ''.join(traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            ))

    @property
    def category(self) -> ErrorCategory:
        if isinstance(self.exception, VoiceFrontendError):
            return self.exception.category
        return ErrorCategory.UNCLASSIFIED

    @classmethod
    def from_exception(cls, component: str, exc: BaseException, **context) -> 'ComponentError':
        return cls(
            component=component,
            severity=classify_severity(exc),
            message=str(exc) or type(exc).__name__,
            exception=exc,
            context=context
        )


class ErrorHandler:
    """
    Records component errors and runs recovery for the recoverable ones.

    WARNING entries are only logged. RECOVERABLE entries run the strategy
    registered for their component; FATAL entries are left to the caller,
    which decides whether the service keeps running.
    """

    def __init__(self, max_history: int = 100):
        self._history: Deque[ComponentError] = deque(maxlen=max_history)
        self._strategies: Dict[str, Callable] = {}
        self._recovered = 0

    def register_recovery(self, component: str, strategy: Callable):
        """``strategy`` is an async callable taking the ComponentError."""
        self._strategies[component] = strategy
        logger.debug("Recovery strategy registered for %s", component)

    async def handle_error(self, error: ComponentError) -> bool:
        """
        Returns:
            True if the error needs nothing further (logged or recovered)
        """
        self._history.append(error)

        if error.severity == ErrorSeverity.WARNING:
            logger.warning("%s: %s", error.component, error.message)
            return True

        if error.severity == ErrorSeverity.FATAL:
            logger.critical("Fatal %s error in %s: %s",
                            error.category.value, error.component, error.message)
            if error.traceback_str:
                logger.debug("Traceback:\n%s", error.traceback_str)
            return False

        strategy = self._strategies.get(error.component)
        if strategy is None:
            logger.warning("%s: %s (no recovery registered)", error.component, error.message)
            return False

        logger.warning("%s: %s, recovering", error.component, error.message)
        try:
            await strategy(error)
        except Exception as e:
            logger.error("Recovery for %s failed: %s", error.component, e)
            return False
        self._recovered += 1
        return True

    def get_error_history(self, component: Optional[str] = None) -> List[ComponentError]:
        return [e for e in self._history if component is None or e.component == component]

    def get_error_summary(self) -> Dict[str, Any]:
        """Counts by severity, component and user-facing category."""
        summary: Dict[str, Any] = {
            'total_errors': len(self._history),
            'recovered': self._recovered,
            'by_severity': Counter(e.severity.value for e in self._history),
            'by_component': Counter(e.component for e in self._history),
            'by_category': Counter(e.category.value for e in self._history),
            'last_error': self._history[-1].message if self._history else None,
        }
        for key in ('by_severity', 'by_component', 'by_category'):
            summary[key] = dict(summary[key])
        return summary


async def safe_cleanup(*cleanup_funcs: Callable) -> List[tuple]:
    """
    Run every cleanup function in order, even if earlier ones fail.

    Args:
        *cleanup_funcs: Async cleanup functions to run

    Returns:
        List of (function name, exception) pairs for the steps that failed
    """
    errors = []

    for func in cleanup_funcs:
        try:
            await func()
        except Exception as e:
            name = getattr(func, '__name__', repr(func))
            errors.append((name, e))
            logger.warning("Cleanup error in %s: %s", name, e)

    if errors:
        logger.warning("%d cleanup errors occurred", len(errors))
    return errors
