"""Read-only learner analytics: card statistics, session quality, calendar."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from .due import is_due
from .models import Card, CardStatus, INITIAL_EASE_FACTOR, LearningHabits, ReviewSession, SessionQuality

IDEAL_RESPONSE_TIME_MS = 3000.0


def effective_streak(habits: LearningHabits, now: datetime, zone: ZoneInfo) -> int:
    """連続学習日数を now 時点で評価する。最終学習日が昨日より前なら途切れて 0。"""

    if habits.last_active_time is None:
        return habits.streak_count
    last_day = habits.last_active_time.astimezone(zone).date()
    if (now.astimezone(zone).date() - last_day).days > 1:
        return 0
    return habits.streak_count


class UpcomingReviews(BaseModel):
    today: int = 0
    tomorrow: int = 0
    this_week: int = 0


class LearnerStatistics(BaseModel):
    total_cards: int = 0
    new_cards: int = 0
    learning_cards: int = 0
    graduated_cards: int = 0
    due_now: int = 0
    total_reviews: int = 0
    accuracy: int = 0  # percent
    average_ease_factor: float = INITIAL_EASE_FACTOR
    average_response_time: int = 0  # ms
    upcoming: UpcomingReviews = Field(default_factory=UpcomingReviews)
    current_streak: int = 0
    longest_streak: int = 0


def learner_statistics(
    cards: list[Card],
    now: datetime,
    zone: ZoneInfo,
    *,
    current_streak: int = 0,
    longest_streak: int = 0,
) -> LearnerStatistics:
    """カード集合から進捗統計を算出する。

    - accuracy: 全カードの正答数 / 復習数（%・四捨五入）
    - average_ease_factor: カードが無ければ初期値 2.5
    - upcoming: 学習者のタイムゾーンで「今日中」「明日」「7日以内」に期限を迎える件数
    """

    status_counts = Counter(card.status for card in cards)
    total_reviews = sum(card.total_reviews for card in cards)
    correct_reviews = sum(card.correct_reviews for card in cards)
    reviewed = [card for card in cards if card.total_reviews > 0]

    local_now = now.astimezone(zone)
    next_midnight = datetime.combine(local_now.date() + timedelta(days=1), time(0), tzinfo=zone)
    day_after = next_midnight + timedelta(days=1)
    week_end = now + timedelta(days=7)

    upcoming = UpcomingReviews(
        today=sum(1 for card in cards if card.next_review_date < next_midnight),
        tomorrow=sum(1 for card in cards if next_midnight <= card.next_review_date < day_after),
        this_week=sum(1 for card in cards if card.next_review_date <= week_end),
    )

    return LearnerStatistics(
        total_cards=len(cards),
        new_cards=status_counts.get(CardStatus.new, 0),
        learning_cards=status_counts.get(CardStatus.learning, 0),
        graduated_cards=status_counts.get(CardStatus.graduated, 0),
        due_now=sum(1 for card in cards if is_due(card, now)),
        total_reviews=total_reviews,
        accuracy=round(correct_reviews / total_reviews * 100) if total_reviews else 0,
        average_ease_factor=(
            round(sum(card.ease_factor for card in cards) / len(cards), 2) if cards else INITIAL_EASE_FACTOR
        ),
        average_response_time=(
            round(sum(card.average_response_time for card in reviewed) / len(reviewed)) if reviewed else 0
        ),
        upcoming=upcoming,
        current_streak=current_streak,
        longest_streak=longest_streak,
    )


def session_quality(session: ReviewSession) -> tuple[float, SessionQuality]:
    """Return (completion_rate, quality grade) for a finished session.

    score = accuracy*40 + completion*30 + response-time*20 + engagement*10
    """

    answered = len(session.responses)
    completion_rate = answered / len(session.queue) if session.queue else 1.0
    if answered:
        deviation = abs(session.average_response_time - IDEAL_RESPONSE_TIME_MS) / IDEAL_RESPONSE_TIME_MS
        response_time_score = max(0.0, 1.0 - deviation)
    else:
        response_time_score = 0.0

    score = (
        session.accuracy_rate * 40
        + completion_rate * 30
        + response_time_score * 20
        + session.engagement_level / 100 * 10
    )
    if score >= 80:
        grade = SessionQuality.excellent
    elif score >= 65:
        grade = SessionQuality.good
    elif score >= 40:
        grade = SessionQuality.average
    else:
        grade = SessionQuality.poor
    return completion_rate, grade


def review_calendar(
    sessions: Iterable[ReviewSession],
    year: int,
    month: int,
    zone: ZoneInfo,
) -> dict[str, int]:
    """月ごとの学習カレンダー（日付 → 回答数）。"""

    calendar: dict[str, int] = {}
    for session in sessions:
        started = session.started_at.astimezone(zone)
        if started.year != year or started.month != month:
            continue
        day_key = started.date().isoformat()
        calendar[day_key] = calendar.get(day_key, 0) + len(session.responses)
    return dict(sorted(calendar.items()))
