"""Shared fixtures: a fixed clock, the in-memory store and a recording dispatcher."""

import os
from datetime import UTC, datetime

import pytest

# 設定はモジュール読み込み時に確定するため、import より前に環境変数を与える。
# テストではメモリストアを使い、本番向けの厳格チェックは無効化する。
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("STRICT_MODE", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from review_engine.clock import FixedClock  # noqa: E402
from review_engine.config import Settings  # noqa: E402
from review_engine.engine import ReviewEngine  # noqa: E402
from review_engine.events import RecordingEventSink  # noqa: E402
from review_engine.notifications import InMemoryNotificationDispatcher  # noqa: E402
from review_engine.store import InMemoryKeyValueStore  # noqa: E402

# 2024-01-10 (Wed) 12:00 UTC
START = datetime(2024, 1, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START)


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def dispatcher() -> InMemoryNotificationDispatcher:
    return InMemoryNotificationDispatcher()


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def engine_settings() -> Settings:
    return Settings(store_backend="memory", strict_mode=False, environment="test")


@pytest.fixture
def engine(store, dispatcher, clock, events, engine_settings) -> ReviewEngine:
    return ReviewEngine(
        store=store,
        dispatcher=dispatcher,
        clock=clock,
        events=events,
        settings=engine_settings,
    )
