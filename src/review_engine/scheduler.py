"""SM-2 review scheduling.

- quality: forgot=0, hard=3, good=4, easy=5
- success (quality >= 3): interval 1 → 6 → round_half_up(interval * ease)（更新前の ease を使う）
- failure: repetitions=0, interval=1, status=learning（graduated からも降格する）
- ease は成否に関わらず更新し、下限 1.3 で丸める
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from .errors import ValidationError
from .models import Assessment, Card, CardStatus, MIN_EASE_FACTOR

QUALITY_BY_ASSESSMENT: dict[Assessment, int] = {
    Assessment.forgot: 0,
    Assessment.hard: 3,
    Assessment.good: 4,
    Assessment.easy: 5,
}

PASSING_QUALITY = 3
GRADUATION_INTERVAL_DAYS = 21


def round_half_up(value: float) -> int:
    """0.5 ちょうどは切り上げる（偶数丸めにしない）。"""

    return math.floor(value + 0.5)


def parse_assessment(value: Assessment | str) -> Assessment:
    if isinstance(value, Assessment):
        return value
    try:
        return Assessment(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f"unknown assessment: {value!r}") from exc


def quality_for(assessment: Assessment | str) -> int:
    return QUALITY_BY_ASSESSMENT[parse_assessment(assessment)]


def next_ease_factor(ease_factor: float, quality: int) -> float:
    miss = 5 - quality
    return max(MIN_EASE_FACTOR, ease_factor + 0.1 - miss * (0.08 + miss * 0.02))


def apply_review(card: Card, assessment: Assessment | str, response_time: float, now: datetime) -> Card:
    """Return the card's state after one review; the input card is left untouched."""

    if response_time < 0:
        raise ValidationError("response_time must be >= 0")
    quality = quality_for(assessment)

    repetitions = card.repetitions
    interval = card.interval
    status = card.status
    correct_reviews = card.correct_reviews

    if quality >= PASSING_QUALITY:
        correct_reviews += 1
        if repetitions == 0:
            interval = 1
        elif repetitions == 1:
            interval = 6
        else:
            interval = max(1, round_half_up(interval * card.ease_factor))
        repetitions += 1

        if status == CardStatus.new:
            status = CardStatus.learning
        elif status == CardStatus.learning and interval >= GRADUATION_INTERVAL_DAYS:
            status = CardStatus.graduated
    else:
        repetitions = 0
        interval = 1
        status = CardStatus.learning

    total_reviews = card.total_reviews + 1
    average_response_time = (card.average_response_time * card.total_reviews + response_time) / total_reviews

    return card.model_copy(
        update={
            "ease_factor": next_ease_factor(card.ease_factor, quality),
            "interval": interval,
            "repetitions": repetitions,
            "status": status,
            "next_review_date": now + timedelta(days=interval),
            "total_reviews": total_reviews,
            "correct_reviews": correct_reviews,
            "average_response_time": average_response_time,
            "last_reviewed_at": now,
        }
    )
