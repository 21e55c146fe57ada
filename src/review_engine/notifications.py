"""Reminder planning on top of a pluggable notification dispatcher.

- 通知時刻: sorted(preferred_hours ∪ best_hours) から静音時間帯を除き、頻度段階の件数で打ち切る
- 各時刻は学習者のタイムゾーンで `now` より厳密に後の hh:00 に解決する
- ディスパッチャの呼び出しは学習者ロックの外で行い、結果の ID 一覧だけをロック下で記録する
- ディスパッチ失敗はログとイベントに残して残りの時刻の処理を続ける
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, time, timedelta
from threading import Event, Lock
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from .clock import Clock
from .due import due_cards
from .errors import DispatchError
from .events import EventSink, emit_safely
from .id_factory import generate_notification_id
from .learners import ensure_profile, ensure_strategy, ensure_user_config
from .locks import LearnerLocks
from .logging import bound_learner, logger
from .models import (
    FrequencyTier,
    MessageCategory,
    NotificationStrategy,
    QuietHours,
    ScheduledNotification,
    UserConfig,
)
from .models.strategy import DEFAULT_MESSAGES
from .statistics import effective_streak
from .store import EngineRepository

FREQUENCY_LIMITS: dict[FrequencyTier, int] = {
    FrequencyTier.low: 2,
    FrequencyTier.medium: 3,
    FrequencyTier.high: 5,
}
_TIER_ORDER = [FrequencyTier.low, FrequencyTier.medium, FrequencyTier.high]

RESPONSE_GAIN = 0.1
MISS_PENALTY = 0.05
LOW_RESPONSE_RATE = 0.3
HIGH_RESPONSE_RATE = 0.8


class NotificationDispatcher(Protocol):
    def schedule(self, notification_id: str, fire_time: datetime, payload: dict[str, Any]) -> None: ...

    def cancel(self, notification_id: str) -> None: ...


class InMemoryNotificationDispatcher:
    """Keeps scheduled reminders in memory; the default for development and tests."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.scheduled: dict[str, tuple[datetime, dict[str, Any]]] = {}
        self.cancelled: list[str] = []

    def schedule(self, notification_id: str, fire_time: datetime, payload: dict[str, Any]) -> None:
        with self._lock:
            self.scheduled[notification_id] = (fire_time, dict(payload))

    def cancel(self, notification_id: str) -> None:
        with self._lock:
            self.scheduled.pop(notification_id, None)
            self.cancelled.append(notification_id)


def is_quiet_hour(hour: int, quiet: QuietHours) -> bool:
    """静音時間帯の判定。start > end の場合は日付をまたぐ区間として扱う。"""

    if not quiet.enabled:
        return False
    if quiet.start_hour <= quiet.end_hour:
        return quiet.start_hour <= hour <= quiet.end_hour
    return hour >= quiet.start_hour or hour <= quiet.end_hour


def candidate_hours(config: UserConfig, strategy: NotificationStrategy) -> list[int]:
    hours = sorted(set(config.habits.preferred_hours) | set(strategy.optimization.best_hours))
    allowed = [hour for hour in hours if not is_quiet_hour(hour, config.notifications.quiet_hours)]
    return allowed[: FREQUENCY_LIMITS[config.notifications.frequency]]


def next_occurrence(hour: int, now: datetime, zone: ZoneInfo) -> datetime:
    """Next `hour:00` in `zone` strictly after `now`, returned in UTC."""

    local_now = now.astimezone(zone)
    candidate = datetime.combine(local_now.date(), time(hour), tzinfo=zone)
    if candidate <= local_now:
        candidate = datetime.combine(local_now.date() + timedelta(days=1), time(hour), tzinfo=zone)
    return candidate.astimezone(UTC)


def message_category(config: UserConfig, now: datetime) -> MessageCategory:
    habits = config.habits
    if effective_streak(habits, now, config.zone) == 0 < habits.longest_streak:
        return MessageCategory.streak_recovery
    return MessageCategory(config.notifications.message_style.value)


def select_message(strategy: NotificationStrategy, category: MessageCategory) -> str:
    """効果スコアが最も高いメッセージを選ぶ。同点ならリスト順で先のもの。"""

    messages = strategy.messages.get(category) or DEFAULT_MESSAGES[category]
    effectiveness = strategy.optimization.message_effectiveness
    return max(messages, key=lambda message: effectiveness.get(message, 0.0))


def _nudge(value: float, responded: bool) -> float:
    if responded:
        return min(1.0, value + RESPONSE_GAIN)
    return max(0.0, value - MISS_PENALTY)


def _step_tier(tier: FrequencyTier, response_rate: float) -> FrequencyTier:
    index = _TIER_ORDER.index(tier)
    if response_rate < LOW_RESPONSE_RATE:
        index = max(0, index - 1)
    elif response_rate > HIGH_RESPONSE_RATE:
        index = min(len(_TIER_ORDER) - 1, index + 1)
    return _TIER_ORDER[index]


class NotificationPlanner:
    def __init__(
        self,
        repo: EngineRepository,
        dispatcher: NotificationDispatcher,
        locks: LearnerLocks,
        clock: Clock,
        events: EventSink | None = None,
    ) -> None:
        self._repo = repo
        self._dispatcher = dispatcher
        self._locks = locks
        # 同じ学習者の再計算どうしを直列化する（状態ロックとは別）
        self._dispatch_locks = LearnerLocks()
        self._clock = clock
        self._events = events

    def schedule_for(self, learner_id: str, cancel_token: Event | None = None) -> list[ScheduledNotification]:
        with bound_learner(learner_id), self._dispatch_locks.hold(learner_id):
            with self._locks.hold(learner_id):
                config, strategy = ensure_profile(self._repo, learner_id)
                if not config.notifications.enabled:
                    logger.info("notifications_skipped", reason="disabled")
                    return []
                now = self._clock.now()
                due_count = len(due_cards(self._repo.list_cards(learner_id), now))
                if due_count == 0:
                    logger.info("notifications_skipped", reason="no_due_cards")
                    return []
                previous = self._repo.load_notifications(learner_id)
                message = select_message(strategy, message_category(config, now))
                plan = [
                    ScheduledNotification(
                        id=generate_notification_id(),
                        learner_id=learner_id,
                        fire_time=next_occurrence(hour, now, config.zone),
                        message=message,
                        due_card_count=due_count,
                    )
                    for hour in candidate_hours(config, strategy)
                ]

            self._cancel_ids(learner_id, (item.id for item in previous))
            scheduled: list[ScheduledNotification] = []
            for notification in plan:
                if cancel_token is not None and cancel_token.is_set():
                    logger.info("notification_scheduling_cancelled", scheduled=len(scheduled))
                    self._cancel_ids(learner_id, (item.id for item in scheduled))
                    with self._locks.hold(learner_id):
                        self._repo.save_notifications(learner_id, [])
                    return []
                if self._dispatch(notification):
                    scheduled.append(notification)

            with self._locks.hold(learner_id):
                self._repo.save_notifications(learner_id, scheduled)
            logger.info(
                "notifications_scheduled",
                count=len(scheduled),
                planned=len(plan),
                due_card_count=due_count,
            )
            emit_safely(
                self._events,
                "srs_notifications_scheduled",
                learner_id=learner_id,
                notification_count=len(scheduled),
                due_cards_count=due_count,
            )
            return scheduled

    def cancel_all(self, learner_id: str) -> int:
        with bound_learner(learner_id), self._dispatch_locks.hold(learner_id):
            with self._locks.hold(learner_id):
                tracked = self._repo.load_notifications(learner_id)
                self._repo.save_notifications(learner_id, [])
            self._cancel_ids(learner_id, (item.id for item in tracked))
            return len(tracked)

    def tracked(self, learner_id: str) -> list[ScheduledNotification]:
        return self._repo.load_notifications(learner_id)

    def record_delivery(self, learner_id: str, responded: bool, message: str | None = None) -> NotificationStrategy:
        with bound_learner(learner_id), self._locks.hold(learner_id):
            strategy = ensure_strategy(self._repo, learner_id)
            activity = strategy.activity.model_copy(
                update={"response_rate": _nudge(strategy.activity.response_rate, responded)}
            )
            if responded:
                activity.last_engagement_time = self._clock.now()
            optimization = strategy.optimization
            if message is not None:
                effectiveness = dict(optimization.message_effectiveness)
                effectiveness[message] = _nudge(effectiveness.get(message, 0.0), responded)
                optimization = optimization.model_copy(update={"message_effectiveness": effectiveness})
            strategy = strategy.model_copy(update={"activity": activity, "optimization": optimization})
            self._repo.save_strategy(strategy)
            logger.info("notification_delivery_recorded", responded=responded, response_rate=activity.response_rate)
            return strategy

    def optimize(self, learner_id: str) -> list[ScheduledNotification]:
        with bound_learner(learner_id):
            with self._locks.hold(learner_id):
                config = ensure_user_config(self._repo, learner_id)
                strategy = ensure_strategy(self._repo, learner_id)
                current = config.notifications.frequency
                tier = _step_tier(current, strategy.activity.response_rate)
                if tier != current:
                    notifications = config.notifications.model_copy(update={"frequency": tier})
                    self._repo.save_config(config.model_copy(update={"notifications": notifications}))
                    logger.info("notification_frequency_changed", previous=current.value, frequency=tier.value)
                optimization = strategy.optimization.model_copy(update={"frequency": tier})
                self._repo.save_strategy(strategy.model_copy(update={"optimization": optimization}))
            return self.schedule_for(learner_id)

    def optimize_all(self) -> int:
        optimized = 0
        for learner_id in self._repo.list_learners():
            try:
                self.optimize(learner_id)
            except Exception:
                logger.exception("notification_optimize_failed", learner_id=learner_id)
                continue
            optimized += 1
        return optimized

    # --- dispatcher I/O (学習者ロックの外で呼ぶ) ---
    def _dispatch(self, notification: ScheduledNotification) -> bool:
        try:
            self._dispatcher.schedule(notification.id, notification.fire_time, notification.payload())
        except Exception as exc:
            error = exc if isinstance(exc, DispatchError) else DispatchError(str(exc))
            logger.warning(
                "notification_dispatch_failed",
                notification_id=notification.id,
                fire_time=notification.fire_time.isoformat(),
                error=repr(error),
            )
            emit_safely(
                self._events,
                "notification_dispatch_failed",
                learner_id=notification.learner_id,
                notification_id=notification.id,
                error=str(error),
            )
            return False
        return True

    def _cancel_ids(self, learner_id: str, notification_ids: Iterable[str]) -> None:
        for notification_id in notification_ids:
            try:
                self._dispatcher.cancel(notification_id)
            except Exception as exc:
                logger.warning("notification_cancel_failed", notification_id=notification_id, error=repr(exc))
                emit_safely(
                    self._events,
                    "notification_dispatch_failed",
                    learner_id=learner_id,
                    notification_id=notification_id,
                    error=str(exc),
                )
