"""Learner behavior analysis.

直近 `analysis_window_days` 日の完了セッションから活動パターンを推定し、
NotificationStrategy（activity / best_hours）だけを更新する。
"""

from __future__ import annotations

from collections import Counter
from datetime import timedelta

from .clock import Clock
from .config import Settings
from .events import EventSink, emit_safely
from .learners import ensure_strategy, ensure_user_config
from .locks import LearnerLocks
from .logging import bound_learner, logger
from .models import NotificationStrategy, ReviewSession
from .store import EngineRepository


def most_active_hours(sessions: list[ReviewSession], zone, limit: int) -> list[int]:
    """Most frequent local start hours, ties broken by ascending hour."""

    counts = Counter(session.started_at.astimezone(zone).hour for session in sessions)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [hour for hour, _ in ranked[:limit]]


class BehaviorAnalyzer:
    def __init__(
        self,
        repo: EngineRepository,
        locks: LearnerLocks,
        clock: Clock,
        settings: Settings,
        events: EventSink | None = None,
    ) -> None:
        self._repo = repo
        self._locks = locks
        self._clock = clock
        self._settings = settings
        self._events = events

    def analyze(self, learner_id: str) -> NotificationStrategy:
        with bound_learner(learner_id):
            now = self._clock.now()
            window_start = now - timedelta(days=self._settings.analysis_window_days)
            # 完了済みセッションは不変なのでロック外で読んでよい
            recent = [
                session
                for session in self._repo.list_completed_sessions(learner_id)
                if window_start <= session.started_at <= now
            ]

            with self._locks.hold(learner_id):
                config = ensure_user_config(self._repo, learner_id)
                strategy = ensure_strategy(self._repo, learner_id)
                if recent:
                    hours = most_active_hours(recent, config.zone, self._settings.most_active_hours_count)
                    completed = [session.completed_at for session in recent if session.completed_at is not None]
                    activity = strategy.activity.model_copy(
                        update={
                            "most_active_hours": hours,
                            "average_sessions_per_day": len(recent) / self._settings.analysis_window_days,
                            "last_engagement_time": max(completed) if completed else strategy.activity.last_engagement_time,
                        }
                    )
                    optimization = strategy.optimization.model_copy(
                        update={"best_hours": hours[: self._settings.best_hours_count]}
                    )
                else:
                    activity = strategy.activity.model_copy(
                        update={
                            "most_active_hours": list(config.habits.preferred_hours),
                            "average_sessions_per_day": 0.0,
                        }
                    )
                    optimization = strategy.optimization
                strategy = strategy.model_copy(update={"activity": activity, "optimization": optimization})
                self._repo.save_strategy(strategy)

            logger.info(
                "behavior_analyzed",
                sessions=len(recent),
                most_active_hours=strategy.activity.most_active_hours,
                best_hours=strategy.optimization.best_hours,
            )
            emit_safely(
                self._events,
                "srs_behavior_analyzed",
                learner_id=learner_id,
                session_count=len(recent),
                most_active_hours=strategy.activity.most_active_hours,
            )
            return strategy

    def analyze_all(self) -> int:
        analyzed = 0
        for learner_id in self._repo.list_learners():
            try:
                self.analyze(learner_id)
            except Exception:
                logger.exception("behavior_analysis_failed", learner_id=learner_id)
                continue
            analyzed += 1
        return analyzed
