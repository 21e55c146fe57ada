from .card import INITIAL_EASE_FACTOR, MIN_EASE_FACTOR, Card
from .common import (
    Assessment,
    CardStatus,
    EndReason,
    FrequencyTier,
    MessageCategory,
    MessageStyle,
    Mood,
    ReviewPace,
    SessionLength,
    SessionQuality,
    SessionState,
    SessionType,
)
from .session import ReviewResponse, ReviewSession
from .strategy import (
    ActivityPattern,
    NotificationOptimization,
    NotificationStrategy,
    ScheduledNotification,
)
from .user import LearningHabits, NotificationSettings, QuietHours, ReviewSettings, UserConfig

__all__ = [
    "ActivityPattern",
    "Assessment",
    "Card",
    "CardStatus",
    "EndReason",
    "FrequencyTier",
    "INITIAL_EASE_FACTOR",
    "LearningHabits",
    "MIN_EASE_FACTOR",
    "MessageCategory",
    "MessageStyle",
    "Mood",
    "NotificationOptimization",
    "NotificationSettings",
    "NotificationStrategy",
    "QuietHours",
    "ReviewPace",
    "ReviewResponse",
    "ReviewSession",
    "ReviewSettings",
    "ScheduledNotification",
    "SessionLength",
    "SessionQuality",
    "SessionState",
    "SessionType",
    "UserConfig",
]
