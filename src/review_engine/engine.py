"""Engine facade wiring the store, scheduler, session manager, analyzer and planner.

グローバルなシングルトンは持たない。ストア・時計・ディスパッチャ・イベントシンク・
設定はすべてコンストラクタで注入し、学習者ロックのレジストリを各コンポーネントで共有する。
"""

from __future__ import annotations

from collections.abc import Mapping
from threading import Event
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .behavior import BehaviorAnalyzer
from .clock import Clock, SystemClock
from .config import Settings
from .config import settings as default_settings
from .due import due_cards
from .errors import ConflictError, NotFoundError, ValidationError
from .events import EventSink, StructlogEventSink, emit_safely
from .id_factory import generate_card_id
from .jobs import BackgroundJobs, PeriodicJob
from .learners import ensure_profile
from .locks import LearnerLocks
from .logging import bound_learner, logger
from .models import (
    Card,
    EndReason,
    NotificationStrategy,
    ReviewSession,
    ScheduledNotification,
    SessionType,
    UserConfig,
)
from .notifications import InMemoryNotificationDispatcher, NotificationDispatcher, NotificationPlanner
from .sessions import ReviewSessionManager
from .statistics import LearnerStatistics, effective_streak, learner_statistics, review_calendar
from .store import EngineRepository, KeyValueStore, create_store


def deep_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


class ReviewEngine:
    """Public operations of the spaced-repetition engine.

    公開 API:
    - カード: add_card / get_card / get_due_cards
    - セッション: start_session / record_response / complete_session / abandon_session
    - 設定: get_user_config / update_user_config
    - 通知: schedule_intelligent_notifications / record_notification_delivery / optimize_notifications
    - 分析: analyze_behavior / get_statistics / get_session_history / get_review_calendar
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        events: EventSink | None = None,
        settings: Settings | None = None,
        jobs: BackgroundJobs | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.clock = clock or SystemClock()
        self.events = events if events is not None else StructlogEventSink()
        self.dispatcher = dispatcher or InMemoryNotificationDispatcher()
        self.repo = EngineRepository(store if store is not None else create_store(self.settings))
        self.locks = LearnerLocks()
        self.jobs = jobs

        self.sessions = ReviewSessionManager(
            self.repo, self.locks, self.clock, self.settings, events=self.events, jobs=self.jobs
        )
        self.analyzer = BehaviorAnalyzer(self.repo, self.locks, self.clock, self.settings, events=self.events)
        self.planner = NotificationPlanner(self.repo, self.dispatcher, self.locks, self.clock, events=self.events)
        self._periodic = [
            PeriodicJob(
                "behavior_analysis",
                self.settings.behavior_analysis_interval_seconds,
                self.analyzer.analyze_all,
            ),
            PeriodicJob(
                "notification_optimize",
                self.settings.notification_optimize_interval_seconds,
                self.planner.optimize_all,
            ),
        ]

    # --- lifecycle ---
    def start_background(self) -> None:
        for job in self._periodic:
            job.start()
        logger.info("background_jobs_started", jobs=[job.name for job in self._periodic])

    def stop_background(self) -> None:
        for job in self._periodic:
            job.stop()
        if self.jobs is not None:
            self.jobs.shutdown(wait=False)
        logger.info("background_jobs_stopped")

    # --- cards ---
    def add_card(
        self,
        learner_id: str,
        vocabulary_id: str,
        text: str,
        translation: str = "",
        pronunciation_ref: str | None = None,
        image_ref: str | None = None,
    ) -> Card:
        """Create the learner's card for a vocabulary item, or return the existing one.

        新規カードは status=new・interval=0 で、作成時点ですぐに復習対象になる。
        """

        if not learner_id or not vocabulary_id:
            raise ValidationError("learner_id and vocabulary_id are required")
        with bound_learner(learner_id), self.locks.hold(learner_id):
            ensure_profile(self.repo, learner_id)
            existing = self.repo.find_card_by_vocabulary(learner_id, vocabulary_id)
            if existing is not None:
                return existing
            now = self.clock.now()
            card = Card(
                id=generate_card_id(),
                learner_id=learner_id,
                vocabulary_id=vocabulary_id,
                text=text,
                translation=translation,
                pronunciation_ref=pronunciation_ref,
                image_ref=image_ref,
                next_review_date=now,
                created_at=now,
            )
            self.repo.add_card(card)
            logger.info("card_added", card_id=card.id, vocabulary_id=vocabulary_id)
            emit_safely(self.events, "srs_card_added", learner_id=learner_id, card_id=card.id, word=text)
            return card

    def get_card(self, learner_id: str, card_id: str) -> Card:
        card = self.repo.load_card(learner_id, card_id)
        if card is None:
            raise NotFoundError(f"card not found: {card_id}")
        return card

    def get_due_cards(self, learner_id: str, limit: int | None = None) -> list[Card]:
        cards = due_cards(self.repo.list_cards(learner_id), self.clock.now())
        return cards if limit is None else cards[:limit]

    # --- sessions ---
    def start_session(self, learner_id: str, session_type: SessionType | str = SessionType.manual) -> ReviewSession:
        return self.sessions.start_session(learner_id, session_type)

    def record_response(self, session_id: str, card_id: str, assessment: str, response_time: float) -> ReviewSession:
        session = self.sessions.record_response(session_id, card_id, assessment, response_time)
        if self.jobs is not None and self.settings.reschedule_after_review:
            key = session.id if session.is_active else f"learner:{session.learner_id}"
            learner_id = session.learner_id
            self.jobs.submit(key, lambda token: self.planner.schedule_for(learner_id, cancel_token=token))
        return session

    def complete_session(self, session_id: str) -> ReviewSession:
        return self.sessions.complete_session(session_id, reason=EndReason.explicit)

    def abandon_session(self, session_id: str) -> ReviewSession:
        return self.sessions.abandon_session(session_id)

    def get_session_state(self, session_id: str) -> ReviewSession:
        return self.sessions.get_session_state(session_id)

    def get_active_session(self, learner_id: str) -> ReviewSession | None:
        return self.sessions.get_active_session(learner_id)

    # --- learner config ---
    def get_user_config(self, learner_id: str) -> UserConfig:
        config = self.repo.load_config(learner_id)
        if config is None:
            raise NotFoundError(f"user config not found: {learner_id}")
        return config

    def update_user_config(self, learner_id: str, patch: Mapping[str, Any]) -> UserConfig:
        """部分的な設定を既存設定へ深くマージして保存する。

        通知設定が変わった場合は通知を再計算し、無効化された場合は全件取り消す。
        """

        with bound_learner(learner_id):
            with self.locks.hold(learner_id):
                current, _ = ensure_profile(self.repo, learner_id)
                merged = deep_merge(current.model_dump(mode="json"), dict(patch))
                merged["learner_id"] = learner_id
                try:
                    updated = UserConfig.model_validate(merged)
                except PydanticValidationError as exc:
                    raise ValidationError(f"invalid user config: {exc.error_count()} error(s)") from exc
                self.repo.save_config(updated)
                strategy = self.repo.load_strategy(learner_id)
                if strategy is not None and strategy.optimization.frequency != updated.notifications.frequency:
                    optimization = strategy.optimization.model_copy(
                        update={"frequency": updated.notifications.frequency}
                    )
                    self.repo.save_strategy(strategy.model_copy(update={"optimization": optimization}))
            logger.info("user_config_updated", fields=sorted(patch))

            notifications_changed = updated.notifications != current.notifications
            if not updated.notifications.enabled:
                self.planner.cancel_all(learner_id)
            elif notifications_changed:
                self.planner.schedule_for(learner_id)
            return updated

    # --- notifications ---
    def schedule_intelligent_notifications(
        self, learner_id: str, cancel_token: Event | None = None
    ) -> list[ScheduledNotification]:
        return self.planner.schedule_for(learner_id, cancel_token=cancel_token)

    def record_notification_delivery(
        self, learner_id: str, responded: bool, message: str | None = None, start_review: bool = False
    ) -> NotificationStrategy:
        """通知への反応を記録する。

        start_review=True で学習者が反応した場合は scheduled セッションを開始する。
        すでに Active なセッションがあれば開始せずにそのまま続ける。
        """

        strategy = self.planner.record_delivery(learner_id, responded, message=message)
        if responded and start_review:
            try:
                self.start_session(learner_id, SessionType.scheduled)
            except ConflictError:
                with bound_learner(learner_id):
                    logger.info("notification_review_skipped", reason="active_session")
        return strategy

    def optimize_notifications(self, learner_id: str | None = None) -> int:
        if learner_id is not None:
            self.planner.optimize(learner_id)
            return 1
        return self.planner.optimize_all()

    def get_scheduled_notifications(self, learner_id: str) -> list[ScheduledNotification]:
        return self.planner.tracked(learner_id)

    # --- analytics ---
    def analyze_behavior(self, learner_id: str | None = None) -> int:
        if learner_id is not None:
            self.analyzer.analyze(learner_id)
            return 1
        return self.analyzer.analyze_all()

    def get_strategy(self, learner_id: str) -> NotificationStrategy:
        strategy = self.repo.load_strategy(learner_id)
        if strategy is None:
            raise NotFoundError(f"notification strategy not found: {learner_id}")
        return strategy

    def get_statistics(self, learner_id: str) -> LearnerStatistics:
        config = self.get_user_config(learner_id)
        now = self.clock.now()
        return learner_statistics(
            self.repo.list_cards(learner_id),
            now,
            config.zone,
            current_streak=effective_streak(config.habits, now, config.zone),
            longest_streak=config.habits.longest_streak,
        )

    def get_session_history(self, learner_id: str, limit: int = 10) -> list[ReviewSession]:
        sessions = self.repo.list_completed_sessions(learner_id)
        sessions.sort(key=lambda session: session.completed_at or session.started_at, reverse=True)
        return sessions[:limit]

    def get_review_calendar(self, learner_id: str, year: int, month: int) -> dict[str, int]:
        if not 1 <= month <= 12:
            raise ValidationError(f"month out of range: {month}")
        config = self.get_user_config(learner_id)
        return review_calendar(self.repo.list_completed_sessions(learner_id), year, month, config.zone)
