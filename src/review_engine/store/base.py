from __future__ import annotations

from typing import Protocol


class KeyValueStore(Protocol):
    """Byte-oriented key-value contract every backend implements.

    実装はバックエンド固有の例外を StorageError に包んで送出する。
    """

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


def card_key(learner_id: str, card_id: str) -> str:
    return f"card:{learner_id}:{card_id}"


def session_key(session_id: str) -> str:
    return f"session:{session_id}"


def config_key(learner_id: str) -> str:
    return f"config:{learner_id}"


def strategy_key(learner_id: str) -> str:
    return f"strategy:{learner_id}"


def card_index_key(learner_id: str) -> str:
    return f"cards:{learner_id}"


def active_session_key(learner_id: str) -> str:
    return f"active_session:{learner_id}"


def session_history_key(learner_id: str) -> str:
    return f"sessions:{learner_id}"


def notifications_key(learner_id: str) -> str:
    return f"notifications:{learner_id}"


LEARNERS_KEY = "learners"
