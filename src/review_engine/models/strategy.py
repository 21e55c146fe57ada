from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .common import FrequencyTier, MessageCategory
from .user import DEFAULT_PREFERRED_HOURS


DEFAULT_MESSAGES: dict[MessageCategory, list[str]] = {
    MessageCategory.motivational: [
        "Ready for a new challenge? A few words are waiting for you.",
        "Keep going, your English is improving steadily!",
        "Today's review brings you closer to fluent English!",
    ],
    MessageCategory.gentle: [
        "A few words would like to see you again.",
        "A relaxed review of a few minutes locks in what you learned.",
        "Coffee break? Perfect time for a quick review.",
    ],
    MessageCategory.urgent: [
        "Forgetting-curve alert: now is the best time to review!",
        "Your streak is about to break, come rescue it!",
        "Important words need a review before they slip away!",
    ],
    MessageCategory.streak_recovery: [
        "Everyone has off days. Starting again is never too late.",
        "Restart your learning engine and continue the journey.",
        "Your progress is saved, welcome back any time.",
    ],
    MessageCategory.achievement: [
        "New achievement unlocked! Share what you have learned.",
        "Your persistence is paying off, keep it up!",
        "Milestone reached, be proud of yourself!",
    ],
}


class ActivityPattern(BaseModel):
    model_config = ConfigDict(extra="ignore")

    most_active_hours: list[int] = Field(default_factory=lambda: list(DEFAULT_PREFERRED_HOURS))
    average_sessions_per_day: float = Field(default=2.0, ge=0)
    response_rate: float = Field(default=0.7, ge=0.0, le=1.0)
    last_engagement_time: datetime | None = None


class NotificationOptimization(BaseModel):
    model_config = ConfigDict(extra="ignore")

    best_hours: list[int] = Field(default_factory=lambda: [9, 18])
    worst_hours: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6])
    frequency: FrequencyTier = FrequencyTier.medium
    message_effectiveness: dict[str, float] = Field(default_factory=dict)


class NotificationStrategy(BaseModel):
    """Per-learner reminder model derived from behavior and delivery feedback.

    行動分析（activity）と通知の反応（optimization）から導出される学習者ごとの
    通知戦略。カードやセッションの状態は一切持たない。
    """

    model_config = ConfigDict(extra="ignore")

    learner_id: str
    activity: ActivityPattern = Field(default_factory=ActivityPattern)
    optimization: NotificationOptimization = Field(default_factory=NotificationOptimization)
    messages: dict[MessageCategory, list[str]] = Field(
        default_factory=lambda: {category: list(items) for category, items in DEFAULT_MESSAGES.items()}
    )


class ScheduledNotification(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    learner_id: str
    fire_time: datetime
    message: str
    due_card_count: int = Field(ge=0)

    def payload(self) -> dict[str, object]:
        return {
            "learner_id": self.learner_id,
            "due_card_count": self.due_card_count,
            "message": self.message,
        }
