from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import FrequencyTier, MessageStyle, ReviewPace, SessionLength


DEFAULT_PREFERRED_HOURS = [9, 12, 18, 21]


def _validate_hours(value: list[int]) -> list[int]:
    for hour in value:
        if not 0 <= int(hour) <= 23:
            raise ValueError(f"hour out of range: {hour}")
    return [int(hour) for hour in value]


class QuietHours(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    start_hour: int = Field(default=22, ge=0, le=23)
    end_hour: int = Field(default=8, ge=0, le=23)


class NotificationSettings(BaseModel):
    """通知設定。frequency は 1 日あたりの最大通知数の段階（low=2, medium=3, high=5）。"""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    frequency: FrequencyTier = FrequencyTier.medium
    message_style: MessageStyle = MessageStyle.motivational


class ReviewSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    session_length: SessionLength = SessionLength.medium
    pace: ReviewPace = ReviewPace.normal
    difficulty_adaptation: bool = True


class LearningHabits(BaseModel):
    """Rolling summary of when and how long the learner studies."""

    model_config = ConfigDict(extra="ignore")

    preferred_hours: list[int] = Field(default_factory=lambda: list(DEFAULT_PREFERRED_HOURS))
    average_session_duration: float = Field(default=5.0, ge=0)  # minutes
    last_active_time: datetime | None = None
    streak_count: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)

    @field_validator("preferred_hours")
    @classmethod
    def _check_hours(cls, value: list[int]) -> list[int]:
        return _validate_hours(value)


class UserConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    learner_id: str
    timezone: str = "UTC"
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    review: ReviewSettings = Field(default_factory=ReviewSettings)
    habits: LearningHabits = Field(default_factory=LearningHabits)

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
