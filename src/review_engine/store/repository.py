"""Typed access to engine entities on top of a byte-oriented KeyValueStore.

エンティティは pydantic の JSON としてシリアライズし、学習者ごとの一覧は
インデックス用のキー（`cards:{learner}` など）に ID の配列として保持する。
KV ストアにはスキャン機能を要求しないため、一覧取得は必ずインデックス経由で行う。
"""

from __future__ import annotations

import json
from typing import TypeVar

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import StorageError
from ..models import Card, NotificationStrategy, ReviewSession, ScheduledNotification, UserConfig
from .base import (
    LEARNERS_KEY,
    KeyValueStore,
    active_session_key,
    card_index_key,
    card_key,
    config_key,
    notifications_key,
    session_history_key,
    session_key,
    strategy_key,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

_NOTIFICATION_LIST = TypeAdapter(list[ScheduledNotification])


class EngineRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    # --- serialization helpers ---
    def _read_model(self, key: str, model: type[ModelT]) -> ModelT | None:
        raw = self._store.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except PydanticValidationError as exc:
            raise StorageError(f"corrupt record at {key}: {exc.error_count()} validation error(s)") from exc

    def _write_model(self, key: str, value: BaseModel) -> None:
        self._store.set(key, value.model_dump_json().encode("utf-8"))

    def _read_id_list(self, key: str) -> list[str]:
        raw = self._store.get(key)
        if raw is None:
            return []
        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            raise StorageError(f"corrupt index at {key}") from exc
        if not isinstance(parsed, list):
            raise StorageError(f"corrupt index at {key}: expected a list")
        return [str(item) for item in parsed]

    def _write_id_list(self, key: str, ids: list[str]) -> None:
        self._store.set(key, json.dumps(ids).encode("utf-8"))

    # --- learners ---
    def list_learners(self) -> list[str]:
        return self._read_id_list(LEARNERS_KEY)

    def register_learner(self, learner_id: str) -> bool:
        learners = self.list_learners()
        if learner_id in learners:
            return False
        learners.append(learner_id)
        self._write_id_list(LEARNERS_KEY, learners)
        return True

    # --- cards ---
    def load_card(self, learner_id: str, card_id: str) -> Card | None:
        return self._read_model(card_key(learner_id, card_id), Card)

    def save_card(self, card: Card) -> None:
        self._write_model(card_key(card.learner_id, card.id), card)

    def add_card(self, card: Card) -> None:
        """カード本体を保存してからインデックスへ追記する。"""

        self.save_card(card)
        ids = self._read_id_list(card_index_key(card.learner_id))
        if card.id not in ids:
            ids.append(card.id)
            self._write_id_list(card_index_key(card.learner_id), ids)

    def list_cards(self, learner_id: str) -> list[Card]:
        cards: list[Card] = []
        for card_id in self._read_id_list(card_index_key(learner_id)):
            card = self.load_card(learner_id, card_id)
            if card is not None:
                cards.append(card)
        return cards

    def find_card_by_vocabulary(self, learner_id: str, vocabulary_id: str) -> Card | None:
        for card in self.list_cards(learner_id):
            if card.vocabulary_id == vocabulary_id:
                return card
        return None

    # --- sessions ---
    def load_session(self, session_id: str) -> ReviewSession | None:
        return self._read_model(session_key(session_id), ReviewSession)

    def save_session(self, session: ReviewSession) -> None:
        self._write_model(session_key(session.id), session)

    def get_active_session_id(self, learner_id: str) -> str | None:
        raw = self._store.get(active_session_key(learner_id))
        if raw is None:
            return None
        return raw.decode("utf-8") or None

    def set_active_session_id(self, learner_id: str, session_id: str) -> None:
        self._store.set(active_session_key(learner_id), session_id.encode("utf-8"))

    def clear_active_session_id(self, learner_id: str) -> None:
        self._store.delete(active_session_key(learner_id))

    def append_session_history(self, learner_id: str, session_id: str) -> None:
        ids = self._read_id_list(session_history_key(learner_id))
        if session_id not in ids:
            ids.append(session_id)
            self._write_id_list(session_history_key(learner_id), ids)

    def list_completed_sessions(self, learner_id: str) -> list[ReviewSession]:
        sessions: list[ReviewSession] = []
        for session_id in self._read_id_list(session_history_key(learner_id)):
            session = self.load_session(session_id)
            if session is not None:
                sessions.append(session)
        return sessions

    # --- config / strategy ---
    def load_config(self, learner_id: str) -> UserConfig | None:
        return self._read_model(config_key(learner_id), UserConfig)

    def save_config(self, config: UserConfig) -> None:
        self._write_model(config_key(config.learner_id), config)

    def load_strategy(self, learner_id: str) -> NotificationStrategy | None:
        return self._read_model(strategy_key(learner_id), NotificationStrategy)

    def save_strategy(self, strategy: NotificationStrategy) -> None:
        self._write_model(strategy_key(strategy.learner_id), strategy)

    # --- scheduled notifications ---
    def load_notifications(self, learner_id: str) -> list[ScheduledNotification]:
        raw = self._store.get(notifications_key(learner_id))
        if raw is None:
            return []
        try:
            return _NOTIFICATION_LIST.validate_json(raw)
        except PydanticValidationError as exc:
            raise StorageError(f"corrupt notification list for {learner_id}") from exc

    def save_notifications(self, learner_id: str, notifications: list[ScheduledNotification]) -> None:
        if not notifications:
            self._store.delete(notifications_key(learner_id))
            return
        self._store.set(notifications_key(learner_id), _NOTIFICATION_LIST.dump_json(notifications))
