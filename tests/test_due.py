from datetime import UTC, datetime, timedelta

from review_engine.due import days_overdue, due_cards, is_due
from review_engine.models import Card

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=UTC)


def _card(card_id: str, due: datetime, ease: float = 2.5) -> Card:
    return Card(
        id=card_id,
        learner_id="learner-1",
        vocabulary_id=f"vocab-{card_id}",
        text=card_id,
        ease_factor=ease,
        next_review_date=due,
        created_at=NOW - timedelta(days=30),
    )


def test_more_overdue_cards_come_first():
    one_day = _card("a", NOW - timedelta(days=1))
    three_days = _card("b", NOW - timedelta(days=3))

    assert [card.id for card in due_cards([one_day, three_days], NOW)] == ["b", "a"]


def test_future_cards_are_excluded():
    future = _card("future", NOW + timedelta(minutes=1))
    exactly_now = _card("now", NOW)

    assert [card.id for card in due_cards([future, exactly_now], NOW)] == ["now"]
    assert is_due(exactly_now, NOW)
    assert not is_due(future, NOW)


def test_same_overdue_days_harder_card_first():
    easy = _card("easy", NOW - timedelta(days=2, hours=1), ease=2.8)
    hard = _card("hard", NOW - timedelta(days=2, hours=5), ease=1.9)

    assert [card.id for card in due_cards([easy, hard], NOW)] == ["hard", "easy"]


def test_partial_days_are_floored():
    card = _card("a", NOW - timedelta(hours=47))

    assert days_overdue(card, NOW) == 1


def test_full_tie_is_stable_by_id():
    first = _card("b", NOW - timedelta(days=1))
    second = _card("a", NOW - timedelta(days=1))

    assert [card.id for card in due_cards([first, second], NOW)] == ["a", "b"]
