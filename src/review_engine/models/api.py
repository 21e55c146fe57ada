from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .card import Card
from .common import Assessment, Mood, SessionState, SessionType


class AddCardRequest(BaseModel):
    """カード追加リクエスト。同じ vocabulary_id のカードが既にあればそれを返す。"""

    vocabulary_id: str = Field(min_length=1, max_length=128, description="Vocabulary item id / 語彙 ID")
    text: str = Field(min_length=1, description="Word or phrase / 見出し語")
    translation: str = Field(default="", description="Translation / 訳語")
    pronunciation_ref: str | None = Field(default=None, description="Pronunciation asset ref / 発音リソース")
    image_ref: str | None = Field(default=None, description="Image asset ref / 画像リソース")


class DueCardsResponse(BaseModel):
    items: list[Card]
    count: int


class StartSessionRequest(BaseModel):
    session_type: SessionType = SessionType.manual


class ReviewResponseRequest(BaseModel):
    """Answer for the card at the head of the session queue.

    - assessment: forgot | hard | good | easy
    - response_time: 回答までの時間（ミリ秒）
    """

    card_id: str = Field(min_length=1)
    assessment: Assessment
    response_time: float = Field(ge=0, description="Response time in ms / 回答時間（ミリ秒）")


class SessionStateResponse(BaseModel):
    """セッション状態の要約。キューの残数と現在のカードを含む。"""

    id: str
    learner_id: str
    session_type: SessionType
    state: SessionState
    started_at: datetime
    completed_at: datetime | None = None
    end_reason: str | None = None
    current_card: Card | None = None
    remaining: int
    answered: int
    current_streak: int
    accuracy_rate: float
    engagement_level: int
    mood: Mood
    quality: str | None = None


class NotificationDeliveryRequest(BaseModel):
    responded: bool
    message: str | None = None
    start_review: bool = Field(default=False, description="Start a scheduled session on response / 反応時に復習を開始")


class ScheduledNotificationResponse(BaseModel):
    id: str
    fire_time: datetime
    message: str
    due_card_count: int


class UserConfigPatch(BaseModel):
    """部分更新用のペイロード。指定されたキーだけを既存設定へ深くマージする。"""

    timezone: str | None = None
    notifications: dict[str, Any] | None = None
    review: dict[str, Any] | None = None
    habits: dict[str, Any] | None = None
