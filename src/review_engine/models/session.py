from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .card import Card
from .common import Assessment, EndReason, Mood, SessionQuality, SessionState, SessionType


class ReviewResponse(BaseModel):
    """Immutable record of one answer, with the card's state before and after."""

    model_config = ConfigDict(frozen=True)

    card_id: str
    assessment: Assessment
    response_time: float = Field(ge=0)
    timestamp: datetime
    ease_factor_before: float
    interval_before: int
    ease_factor_after: float
    interval_after: int


class ReviewSession(BaseModel):
    """A bounded review session.

    開始時に選ばれたカード列（queue）を先頭から順番に処理する。
    完了後は不変で、行動分析の入力になる。
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    learner_id: str
    session_type: SessionType = SessionType.manual
    state: SessionState = SessionState.active
    started_at: datetime
    completed_at: datetime | None = None
    end_reason: EndReason | None = None

    queue: list[Card] = Field(default_factory=list)
    current_index: int = 0
    max_cards: int
    target_duration: int

    responses: list[ReviewResponse] = Field(default_factory=list)
    current_streak: int = 0
    perfect_answers: int = 0
    correct_answers: int = 0
    accuracy_rate: float = 0.0
    average_response_time: float = 0.0
    engagement_level: int = Field(default=50, ge=0, le=100)
    mood: Mood = Mood.neutral

    completion_rate: float | None = None
    quality: SessionQuality | None = None

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.active

    @property
    def head(self) -> Card | None:
        if self.current_index < len(self.queue):
            return self.queue[self.current_index]
        return None

    @property
    def remaining(self) -> int:
        return max(0, len(self.queue) - self.current_index)
