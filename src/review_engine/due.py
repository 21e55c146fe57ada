from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime, timedelta

from .models import Card

_ONE_DAY = timedelta(days=1)


def days_overdue(card: Card, now: datetime) -> int:
    """Whole days elapsed since the card became due (floor)."""

    return math.floor((now - card.next_review_date) / _ONE_DAY)


def is_due(card: Card, now: datetime) -> bool:
    return card.next_review_date <= now


def due_cards(cards: Iterable[Card], now: datetime) -> list[Card]:
    """期限切れのカードを緊急度順に返す。

    - 期限超過日数の降順
    - 同日数なら ease_factor の昇順（難しいカードを先に）
    - さらに同値なら next_review_date → id の順で安定化
    """

    selected = [card for card in cards if is_due(card, now)]
    return sorted(
        selected,
        key=lambda card: (-days_overdue(card, now), card.ease_factor, card.next_review_date, card.id),
    )
