"""Spaced-repetition scheduling and review-session engine."""

from .clock import FixedClock, SystemClock
from .engine import ReviewEngine
from .errors import ConflictError, DispatchError, EngineError, NotFoundError, StorageError, ValidationError
from .notifications import InMemoryNotificationDispatcher, NotificationDispatcher

__version__ = "0.1.0"

__all__ = [
    "ConflictError",
    "DispatchError",
    "EngineError",
    "FixedClock",
    "InMemoryNotificationDispatcher",
    "NotFoundError",
    "NotificationDispatcher",
    "ReviewEngine",
    "StorageError",
    "SystemClock",
    "ValidationError",
    "__version__",
]
