from fastapi import APIRouter, Depends

from ..engine import ReviewEngine
from ..models import ReviewSession
from ..models.api import ReviewResponseRequest, SessionStateResponse
from .deps import get_engine

router = APIRouter(tags=["sessions"])


def to_state_response(session: ReviewSession) -> SessionStateResponse:
    return SessionStateResponse(
        id=session.id,
        learner_id=session.learner_id,
        session_type=session.session_type,
        state=session.state,
        started_at=session.started_at,
        completed_at=session.completed_at,
        end_reason=session.end_reason.value if session.end_reason else None,
        current_card=session.head if session.is_active else None,
        remaining=session.remaining if session.is_active else 0,
        answered=len(session.responses),
        current_streak=session.current_streak,
        accuracy_rate=session.accuracy_rate,
        engagement_level=session.engagement_level,
        mood=session.mood,
        quality=session.quality.value if session.quality else None,
    )


@router.get("/{session_id}", response_model=SessionStateResponse, summary="セッション状態を取得")
def get_session(session_id: str, engine: ReviewEngine = Depends(get_engine)) -> SessionStateResponse:
    return to_state_response(engine.get_session_state(session_id))


@router.post("/{session_id}/responses", response_model=SessionStateResponse, summary="先頭カードへの回答を記録")
def record_response(
    session_id: str,
    req: ReviewResponseRequest,
    engine: ReviewEngine = Depends(get_engine),
) -> SessionStateResponse:
    """Record an answer for the head card; the session may auto-complete.

    - 409: 先頭以外のカードへの回答
    - 404: 存在しない/完了済みのセッション
    """
    session = engine.record_response(session_id, req.card_id, req.assessment, req.response_time)
    return to_state_response(session)


@router.post("/{session_id}/complete", response_model=SessionStateResponse, summary="セッションを完了")
def complete_session(session_id: str, engine: ReviewEngine = Depends(get_engine)) -> SessionStateResponse:
    return to_state_response(engine.complete_session(session_id))


@router.post("/{session_id}/abandon", response_model=SessionStateResponse, summary="セッションを中断")
def abandon_session(session_id: str, engine: ReviewEngine = Depends(get_engine)) -> SessionStateResponse:
    return to_state_response(engine.abandon_session(session_id))
