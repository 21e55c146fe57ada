from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock, RLock


class LearnerLocks:
    """学習者ごとの排他ロック。

    同じ学習者に対する read-modify-write を直列化し、異なる学習者は並列に
    処理できるようにする。RLock なので同一スレッド内の入れ子取得は許可する。
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[str, RLock] = {}

    def _lock_for(self, learner_id: str) -> RLock:
        with self._guard:
            lock = self._locks.get(learner_id)
            if lock is None:
                lock = RLock()
                self._locks[learner_id] = lock
            return lock

    @contextmanager
    def hold(self, learner_id: str) -> Iterator[None]:
        lock = self._lock_for(learner_id)
        with lock:
            yield
