"""Logging utilities for the review engine.

構造化ログの初期化と、学習者単位のコンテキスト付与をまとめて提供する。
同じ学習者に対する回答処理とバックグラウンドジョブのログを突合できるよう、
`learner_id` を contextvars 経由で全イベントへ自動付与する。
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import logging
import structlog
from structlog import contextvars as structlog_contextvars

from .config import settings


_LEARNER_CONTEXT_KEYS = ("learner_id", "session_id")


def _merge_learner_context(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Merge learner/session identifiers bound via contextvars.

    明示的にイベントへ渡された値を優先し、未指定のキーだけを補完する。
    ContextVar に保存済みの値のみを参照するため、他スレッドの学習者 ID が
    混入することはない。
    """

    context = structlog_contextvars.get_contextvars()
    for key in _LEARNER_CONTEXT_KEYS:
        if key in context and key not in event_dict:
            event_dict[key] = context[key]
    return event_dict


def configure_logging(level: str | None = None) -> None:
    """Configure structlog for engine-wide logging.

    標準 logging を初期化し、structlog で ISO タイムスタンプと JSON 形式の
    出力を有効化する。
    """
    # stdlib 側の出力に余計なプレフィックスを付けないため、フォーマットは
    # メッセージのみ(%(message)s)に固定する。
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            _merge_learner_context,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


@contextmanager
def bound_learner(learner_id: str, session_id: str | None = None) -> Iterator[None]:
    """Bind learner (and optionally session) ids for the enclosed block."""

    values: dict[str, str] = {"learner_id": learner_id}
    if session_id is not None:
        values["session_id"] = session_id
    tokens = structlog_contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        structlog_contextvars.reset_contextvars(**tokens)


logger = structlog.get_logger()
