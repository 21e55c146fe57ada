from fastapi import APIRouter, Depends, Query

from ..engine import ReviewEngine
from ..models import Card, NotificationStrategy, UserConfig
from ..models.api import (
    AddCardRequest,
    DueCardsResponse,
    NotificationDeliveryRequest,
    ScheduledNotificationResponse,
    SessionStateResponse,
    StartSessionRequest,
    UserConfigPatch,
)
from ..statistics import LearnerStatistics
from .deps import get_engine
from .sessions import to_state_response

router = APIRouter(tags=["learners"])


@router.post("/{learner_id}/cards", response_model=Card, summary="カードを追加（既存なら返す）")
def add_card(learner_id: str, req: AddCardRequest, engine: ReviewEngine = Depends(get_engine)) -> Card:
    return engine.add_card(
        learner_id,
        req.vocabulary_id,
        req.text,
        translation=req.translation,
        pronunciation_ref=req.pronunciation_ref,
        image_ref=req.image_ref,
    )


@router.get("/{learner_id}/cards/{card_id}", response_model=Card, summary="カードを取得")
def get_card(learner_id: str, card_id: str, engine: ReviewEngine = Depends(get_engine)) -> Card:
    return engine.get_card(learner_id, card_id)


@router.get("/{learner_id}/due", response_model=DueCardsResponse, summary="期限切れカードを緊急度順に取得")
def get_due_cards(
    learner_id: str,
    limit: int | None = Query(default=None, ge=1, le=500),
    engine: ReviewEngine = Depends(get_engine),
) -> DueCardsResponse:
    items = engine.get_due_cards(learner_id, limit=limit)
    return DueCardsResponse(items=items, count=len(items))


@router.post("/{learner_id}/sessions", response_model=SessionStateResponse, summary="復習セッションを開始")
def start_session(
    learner_id: str,
    req: StartSessionRequest | None = None,
    engine: ReviewEngine = Depends(get_engine),
) -> SessionStateResponse:
    """Start a session; 409 when one is already active for the learner."""
    session_type = req.session_type if req is not None else StartSessionRequest().session_type
    return to_state_response(engine.start_session(learner_id, session_type))


@router.get("/{learner_id}/sessions/active", response_model=SessionStateResponse | None, summary="進行中のセッション")
def get_active_session(learner_id: str, engine: ReviewEngine = Depends(get_engine)) -> SessionStateResponse | None:
    session = engine.get_active_session(learner_id)
    return to_state_response(session) if session is not None else None


@router.get("/{learner_id}/sessions/history", response_model=list[SessionStateResponse], summary="完了済みセッション（新しい順）")
def get_session_history(
    learner_id: str,
    limit: int = Query(default=10, ge=1, le=100),
    engine: ReviewEngine = Depends(get_engine),
) -> list[SessionStateResponse]:
    return [to_state_response(session) for session in engine.get_session_history(learner_id, limit=limit)]


@router.get("/{learner_id}/config", response_model=UserConfig, summary="学習者設定を取得")
def get_user_config(learner_id: str, engine: ReviewEngine = Depends(get_engine)) -> UserConfig:
    return engine.get_user_config(learner_id)


@router.patch("/{learner_id}/config", response_model=UserConfig, summary="学習者設定を部分更新")
def update_user_config(
    learner_id: str,
    patch: UserConfigPatch,
    engine: ReviewEngine = Depends(get_engine),
) -> UserConfig:
    return engine.update_user_config(learner_id, patch.model_dump(exclude_none=True))


@router.post(
    "/{learner_id}/notifications/schedule",
    response_model=list[ScheduledNotificationResponse],
    summary="通知を再計算して登録",
)
def schedule_notifications(
    learner_id: str, engine: ReviewEngine = Depends(get_engine)
) -> list[ScheduledNotificationResponse]:
    scheduled = engine.schedule_intelligent_notifications(learner_id)
    return [
        ScheduledNotificationResponse(
            id=item.id,
            fire_time=item.fire_time,
            message=item.message,
            due_card_count=item.due_card_count,
        )
        for item in scheduled
    ]


@router.post("/{learner_id}/notifications/delivery", response_model=NotificationStrategy, summary="通知への反応を記録")
def record_notification_delivery(
    learner_id: str,
    req: NotificationDeliveryRequest,
    engine: ReviewEngine = Depends(get_engine),
) -> NotificationStrategy:
    return engine.record_notification_delivery(
        learner_id, req.responded, message=req.message, start_review=req.start_review
    )


@router.get("/{learner_id}/statistics", response_model=LearnerStatistics, summary="進捗統計")
def get_statistics(learner_id: str, engine: ReviewEngine = Depends(get_engine)) -> LearnerStatistics:
    return engine.get_statistics(learner_id)


@router.get("/{learner_id}/calendar", response_model=dict[str, int], summary="月別の学習カレンダー")
def get_review_calendar(
    learner_id: str,
    year: int = Query(ge=1970, le=9999),
    month: int = Query(ge=1, le=12),
    engine: ReviewEngine = Depends(get_engine),
) -> dict[str, int]:
    return engine.get_review_calendar(learner_id, year, month)
