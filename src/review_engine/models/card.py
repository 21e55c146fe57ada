from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .common import CardStatus


INITIAL_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


class Card(BaseModel):
    """One learner's scheduling state for a single vocabulary item.

    学習者 × 語彙ごとに 1 枚。SM-2 の状態（ease/interval/repetitions）と
    復習統計を保持する。未復習のカードは interval=0 で、復習後は常に 1 以上。
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    learner_id: str
    vocabulary_id: str
    text: str
    translation: str = ""
    pronunciation_ref: str | None = None
    image_ref: str | None = None

    ease_factor: float = Field(default=INITIAL_EASE_FACTOR, ge=MIN_EASE_FACTOR)
    interval: int = Field(default=0, ge=0)
    repetitions: int = Field(default=0, ge=0)
    next_review_date: datetime
    status: CardStatus = CardStatus.new

    total_reviews: int = Field(default=0, ge=0)
    correct_reviews: int = Field(default=0, ge=0)
    average_response_time: float = Field(default=0.0, ge=0)

    created_at: datetime
    last_reviewed_at: datetime | None = None
