from datetime import UTC, datetime

import pytest

from review_engine.store.base import config_key

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=UTC)


def _session_at(engine, clock, learner_id: str, when: datetime) -> None:
    # due カードが無いセッションは開始と同時に完了する
    clock.set(when)
    engine.start_session(learner_id)


def test_most_active_and_best_hours(engine, clock):
    starts = [
        datetime(2024, 1, 2, 3, 0, tzinfo=UTC),  # outside the 7 day window
        datetime(2024, 1, 4, 9, 0, tzinfo=UTC),
        datetime(2024, 1, 5, 9, 30, tzinfo=UTC),
        datetime(2024, 1, 6, 9, 10, tzinfo=UTC),
        datetime(2024, 1, 7, 14, 0, tzinfo=UTC),
        datetime(2024, 1, 8, 14, 0, tzinfo=UTC),
        datetime(2024, 1, 9, 20, 0, tzinfo=UTC),
        datetime(2024, 1, 10, 7, 0, tzinfo=UTC),
    ]
    for when in starts:
        _session_at(engine, clock, "learner-1", when)
    clock.set(NOW)

    engine.analyze_behavior("learner-1")

    strategy = engine.get_strategy("learner-1")
    assert strategy.activity.most_active_hours == [9, 14, 7, 20]
    assert strategy.optimization.best_hours == [9, 14, 7]
    assert strategy.activity.average_sessions_per_day == pytest.approx(1.0)
    assert strategy.activity.last_engagement_time == datetime(2024, 1, 10, 7, 0, tzinfo=UTC)


def test_hours_are_counted_in_learner_timezone(engine, clock):
    engine.update_user_config("learner-1", {"timezone": "Asia/Tokyo"})
    _session_at(engine, clock, "learner-1", datetime(2024, 1, 9, 0, 0, tzinfo=UTC))
    clock.set(NOW)

    engine.analyze_behavior("learner-1")

    assert engine.get_strategy("learner-1").activity.most_active_hours == [9]


def test_no_history_falls_back_to_preferred_hours(engine):
    engine.update_user_config("learner-1", {"habits": {"preferred_hours": [8, 19]}})

    engine.analyze_behavior("learner-1")

    strategy = engine.get_strategy("learner-1")
    assert strategy.activity.most_active_hours == [8, 19]
    assert strategy.activity.average_sessions_per_day == 0.0
    assert strategy.optimization.best_hours == [9, 18]
    assert strategy.activity.last_engagement_time is None


def test_analysis_only_writes_the_strategy(engine, clock):
    engine.add_card("learner-1", "vocab-1", "word")
    before_config = engine.get_user_config("learner-1")
    before_cards = engine.get_due_cards("learner-1")

    engine.analyze_behavior("learner-1")

    assert engine.get_user_config("learner-1") == before_config
    assert engine.get_due_cards("learner-1") == before_cards


def test_analyze_all_continues_past_broken_learner(engine, store, clock):
    _session_at(engine, clock, "learner-1", datetime(2024, 1, 9, 10, 0, tzinfo=UTC))
    clock.set(NOW)
    engine.repo.register_learner("broken")
    store.set(config_key("broken"), b"{not json")

    assert engine.analyze_behavior() == 1
    assert engine.get_strategy("learner-1").activity.most_active_hours == [10]
