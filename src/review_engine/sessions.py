"""Review session lifecycle: NoSession → Active → Completed.

学習者ごとに Active なセッションは高々 1 つ。`active_session:{learner}` の
インデックスを学習者ロックの下で check-then-create することで保証する。
カードはキューの先頭から順にしか回答できない。
"""

from __future__ import annotations

from datetime import datetime

from .clock import Clock
from .config import Settings
from .due import due_cards
from .errors import ConflictError, NotFoundError, ValidationError
from .events import EventSink, emit_safely
from .id_factory import generate_session_id
from .jobs import BackgroundJobs
from .learners import ensure_profile, ensure_user_config
from .locks import LearnerLocks
from .logging import bound_learner, logger
from .models import (
    Assessment,
    EndReason,
    Mood,
    ReviewResponse,
    ReviewSession,
    SessionLength,
    SessionState,
    SessionType,
    UserConfig,
)
from .scheduler import PASSING_QUALITY, apply_review, parse_assessment, quality_for
from .statistics import session_quality
from .store import EngineRepository

# session length tier -> (max cards, target duration in seconds)
SESSION_LIMITS: dict[SessionLength, tuple[int, int]] = {
    SessionLength.short: (5, 60),
    SessionLength.medium: (10, 120),
    SessionLength.long: (15, 180),
}

INITIAL_ENGAGEMENT = 50
ENGAGEMENT_GAIN = 5
ENGAGEMENT_LOSS = 10


def session_limits(tier: SessionLength | str) -> tuple[int, int]:
    try:
        return SESSION_LIMITS[SessionLength(tier)]
    except ValueError as exc:
        raise ValidationError(f"unknown session length tier: {tier!r}") from exc


def derive_mood(streak: int, engagement: int) -> Mood:
    if streak >= 5 and engagement >= 85:
        return Mood.excited
    if streak >= 3 and engagement >= 70:
        return Mood.confident
    if engagement <= 30:
        return Mood.frustrated
    return Mood.neutral


def parse_session_type(value: SessionType | str) -> SessionType:
    try:
        return SessionType(value)
    except ValueError as exc:
        raise ValidationError(f"unknown session type: {value!r}") from exc


class ReviewSessionManager:
    def __init__(
        self,
        repo: EngineRepository,
        locks: LearnerLocks,
        clock: Clock,
        settings: Settings,
        events: EventSink | None = None,
        jobs: BackgroundJobs | None = None,
    ) -> None:
        self._repo = repo
        self._locks = locks
        self._clock = clock
        self._settings = settings
        self._events = events
        self._jobs = jobs

    # --- queries ---
    def get_session_state(self, session_id: str) -> ReviewSession:
        session = self._repo.load_session(session_id)
        if session is None:
            raise NotFoundError(f"session not found: {session_id}")
        return session

    def get_active_session(self, learner_id: str) -> ReviewSession | None:
        session_id = self._repo.get_active_session_id(learner_id)
        if session_id is None:
            return None
        session = self._repo.load_session(session_id)
        if session is None or not session.is_active or self._expired(session, self._clock.now()):
            return None
        return session

    # --- transitions ---
    def start_session(self, learner_id: str, session_type: SessionType | str = SessionType.manual) -> ReviewSession:
        kind = parse_session_type(session_type)
        with bound_learner(learner_id), self._locks.hold(learner_id):
            now = self._clock.now()
            active_id = self._repo.get_active_session_id(learner_id)
            if active_id is not None:
                active = self._repo.load_session(active_id)
                if active is not None and active.is_active:
                    if not self._expired(active, now):
                        raise ConflictError(f"learner {learner_id} already has an active session: {active_id}")
                    # 放置されたセッションは時間切れとして閉じてから新しく始める
                    self._finish(active, ensure_user_config(self._repo, learner_id), EndReason.timed_out, now)
                else:
                    # インデックスだけが残っている場合は掃除して続行する
                    self._repo.clear_active_session_id(learner_id)

            config, _ = ensure_profile(self._repo, learner_id)
            max_cards, target_duration = session_limits(config.review.session_length)
            queue = due_cards(self._repo.list_cards(learner_id), now)[:max_cards]

            session = ReviewSession(
                id=generate_session_id(),
                learner_id=learner_id,
                session_type=kind,
                started_at=now,
                queue=queue,
                max_cards=max_cards,
                target_duration=target_duration,
                engagement_level=INITIAL_ENGAGEMENT,
            )
            self._repo.save_session(session)
            self._repo.set_active_session_id(learner_id, session.id)
            logger.info(
                "session_started",
                session_id=session.id,
                session_type=kind.value,
                cards=len(queue),
                target_duration=target_duration,
            )
            emit_safely(
                self._events,
                "srs_review_session_started",
                learner_id=learner_id,
                session_id=session.id,
                session_type=kind.value,
                cards_count=len(queue),
            )
            if not queue:
                session = self._finish(session, config, EndReason.exhausted, now)
            return session

    def record_response(
        self,
        session_id: str,
        card_id: str,
        assessment: Assessment | str,
        response_time: float,
    ) -> ReviewSession:
        parsed = parse_assessment(assessment)
        if response_time < 0:
            raise ValidationError("response_time must be >= 0")

        learner_id = self._learner_of(session_id)
        with bound_learner(learner_id, session_id), self._locks.hold(learner_id):
            session = self._repo.load_session(session_id)
            if session is None or not session.is_active:
                raise NotFoundError(f"no active session: {session_id}")
            now = self._clock.now()
            if self._expired(session, now):
                # 制限時間を過ぎた回答はカードに反映しない
                self._finish(session, ensure_user_config(self._repo, learner_id), EndReason.timed_out, now)
                raise NotFoundError(f"session timed out: {session_id}")
            head = session.head
            if head is None or head.id != card_id:
                expected = head.id if head is not None else None
                raise ConflictError(f"card {card_id} is not the current card (expected {expected})")

            card = self._repo.load_card(learner_id, card_id)
            if card is None:
                raise NotFoundError(f"card not found: {card_id}")

            updated = apply_review(card, parsed, response_time, now)
            self._repo.save_card(updated)

            session = self._apply_response(session, card, updated, parsed, response_time, now)
            self._repo.save_session(session)
            logger.info(
                "response_recorded",
                card_id=card_id,
                assessment=parsed.value,
                interval=updated.interval,
                ease_factor=round(updated.ease_factor, 4),
                status=updated.status.value,
            )

            if session.head is None:
                config = ensure_user_config(self._repo, learner_id)
                session = self._finish(session, config, EndReason.exhausted, now)
            return session

    def complete_session(self, session_id: str, reason: EndReason = EndReason.explicit) -> ReviewSession:
        """Complete a session; completing an already completed session is a no-op."""

        learner_id = self._learner_of(session_id)
        with bound_learner(learner_id, session_id), self._locks.hold(learner_id):
            session = self.get_session_state(session_id)
            if not session.is_active:
                return session
            config = ensure_user_config(self._repo, learner_id)
            return self._finish(session, config, reason, self._clock.now())

    def abandon_session(self, session_id: str) -> ReviewSession:
        return self.complete_session(session_id, reason=EndReason.abandoned)

    # --- internals ---
    def _learner_of(self, session_id: str) -> str:
        return self.get_session_state(session_id).learner_id

    def _apply_response(
        self,
        session: ReviewSession,
        before,
        after,
        assessment: Assessment,
        response_time: float,
        now: datetime,
    ) -> ReviewSession:
        success = quality_for(assessment) >= PASSING_QUALITY
        response = ReviewResponse(
            card_id=before.id,
            assessment=assessment,
            response_time=response_time,
            timestamp=now,
            ease_factor_before=before.ease_factor,
            interval_before=before.interval,
            ease_factor_after=after.ease_factor,
            interval_after=after.interval,
        )
        responses = [*session.responses, response]
        answered = len(responses)
        correct = session.correct_answers + (1 if success else 0)
        streak = session.current_streak + 1 if success else 0
        engagement = session.engagement_level + (ENGAGEMENT_GAIN if success else -ENGAGEMENT_LOSS)
        engagement = max(0, min(100, engagement))

        queue = list(session.queue)
        queue[session.current_index] = after
        return session.model_copy(
            update={
                "queue": queue,
                "current_index": session.current_index + 1,
                "responses": responses,
                "current_streak": streak,
                "perfect_answers": session.perfect_answers + (1 if assessment == Assessment.easy else 0),
                "correct_answers": correct,
                "accuracy_rate": correct / answered,
                "average_response_time": (session.average_response_time * (answered - 1) + response_time) / answered,
                "engagement_level": engagement,
                "mood": derive_mood(streak, engagement),
            }
        )

    def _expired(self, session: ReviewSession, now: datetime) -> bool:
        elapsed = (now - session.started_at).total_seconds()
        return elapsed >= session.target_duration * self._settings.session_overrun_tolerance

    def _finish(self, session: ReviewSession, config: UserConfig, reason: EndReason, now: datetime) -> ReviewSession:
        """セッションを確定させ、履歴・学習習慣・インデックスを更新する。"""

        completion_rate, quality = session_quality(session)
        finished = session.model_copy(
            update={
                "state": SessionState.completed,
                "completed_at": now,
                "end_reason": reason,
                "completion_rate": completion_rate,
                "quality": quality,
            }
        )
        previous_sessions = len(self._repo.list_completed_sessions(session.learner_id))
        self._repo.save_session(finished)
        self._repo.clear_active_session_id(session.learner_id)
        self._repo.append_session_history(session.learner_id, session.id)
        self._repo.save_config(self._updated_habits(config, finished, previous_sessions))

        if self._jobs is not None:
            self._jobs.cancel(session.id)

        logger.info(
            "session_completed",
            session_id=session.id,
            end_reason=reason.value,
            answered=len(finished.responses),
            accuracy_rate=round(finished.accuracy_rate, 4),
            quality=quality.value,
        )
        emit_safely(
            self._events,
            "srs_review_session_completed",
            learner_id=session.learner_id,
            session_id=session.id,
            end_reason=reason.value,
            cards_reviewed=len(finished.responses),
            accuracy_rate=finished.accuracy_rate,
            completion_rate=completion_rate,
            session_quality=quality.value,
        )
        return finished

    @staticmethod
    def _updated_habits(config: UserConfig, session: ReviewSession, previous_sessions: int) -> UserConfig:
        habits = config.habits
        completed_at = session.completed_at or session.started_at
        zone = config.zone
        duration_minutes = (completed_at - session.started_at).total_seconds() / 60
        average = (habits.average_session_duration * previous_sessions + duration_minutes) / (previous_sessions + 1)

        today = completed_at.astimezone(zone).date()
        if habits.last_active_time is None:
            streak = 1
        else:
            gap = (today - habits.last_active_time.astimezone(zone).date()).days
            if gap <= 0:
                streak = max(habits.streak_count, 1)
            elif gap == 1:
                streak = habits.streak_count + 1
            else:
                streak = 1

        new_habits = habits.model_copy(
            update={
                "average_session_duration": average,
                "last_active_time": completed_at,
                "streak_count": streak,
                "longest_streak": max(habits.longest_streak, streak),
            }
        )
        return config.model_copy(update={"habits": new_habits})
