from enum import Enum


class Assessment(str, Enum):
    forgot = "forgot"
    hard = "hard"
    good = "good"
    easy = "easy"


class CardStatus(str, Enum):
    new = "new"
    learning = "learning"
    graduated = "graduated"


class SessionType(str, Enum):
    scheduled = "scheduled"
    manual = "manual"
    streak_recovery = "streak_recovery"


class SessionState(str, Enum):
    active = "active"
    completed = "completed"


class EndReason(str, Enum):
    exhausted = "exhausted"
    timed_out = "timed_out"
    explicit = "explicit"
    abandoned = "abandoned"


class Mood(str, Enum):
    frustrated = "frustrated"
    neutral = "neutral"
    confident = "confident"
    excited = "excited"


class SessionQuality(str, Enum):
    poor = "poor"
    average = "average"
    good = "good"
    excellent = "excellent"


class SessionLength(str, Enum):
    short = "short"
    medium = "medium"
    long = "long"


class ReviewPace(str, Enum):
    relaxed = "relaxed"
    normal = "normal"
    fast = "fast"


class FrequencyTier(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class MessageStyle(str, Enum):
    gentle = "gentle"
    motivational = "motivational"
    urgent = "urgent"


class MessageCategory(str, Enum):
    motivational = "motivational"
    gentle = "gentle"
    urgent = "urgent"
    streak_recovery = "streak_recovery"
    achievement = "achievement"
