"""Error taxonomy raised by the review engine.

エンジンが同期的に送出する例外の一覧。永続化層の失敗（StorageError）は
呼び出し元へそのまま伝播させ、状態を変更する書き込みを暗黙に再試行しない。
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for every error raised by the engine."""


class NotFoundError(EngineError):
    """Unknown card, session, or learner config."""


class ConflictError(EngineError):
    """The requested transition conflicts with the current state."""


class ValidationError(EngineError):
    """Input could not be interpreted (assessment, tier, config payload)."""


class StorageError(EngineError):
    """The persistent store failed to complete an operation."""


class DispatchError(EngineError):
    """The notification dispatcher rejected a schedule/cancel call."""
