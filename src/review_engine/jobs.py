"""Background recomputation and periodic jobs.

- キー付きジョブ: 同じキー（セッション ID など）で再投入すると古いジョブは取り消される
- 取り消しは `threading.Event` のトークンで伝える。実行中のジョブは区切りごとに
  トークンを確認して自発的に中断する
- 周期ジョブ: 行動分析（毎時）と通知最適化（毎日）を専用スレッドで回す
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Event, Lock, Thread
from typing import Any

from .logging import logger

Job = Callable[[Event], Any]


class BackgroundJobs:
    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="review-engine")
        self._lock = Lock()
        self._pending: dict[str, tuple[Future, Event]] = {}

    def submit(self, key: str, job: Job) -> Future:
        with self._lock:
            self._cancel_locked(key)
            token = Event()
            future = self._executor.submit(self._run, key, job, token)
            self._pending[key] = (future, token)
        future.add_done_callback(lambda done, key=key: self._forget(key, done))
        return future

    def cancel(self, key: str) -> bool:
        """キーに紐づく未完了ジョブを取り消す。取り消し対象があれば True。"""

        with self._lock:
            return self._cancel_locked(key)

    def pending_keys(self) -> list[str]:
        with self._lock:
            return sorted(self._pending)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            for key in list(self._pending):
                self._cancel_locked(key)
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def _cancel_locked(self, key: str) -> bool:
        entry = self._pending.pop(key, None)
        if entry is None:
            return False
        future, token = entry
        token.set()
        future.cancel()
        logger.info("background_job_cancelled", job_key=key)
        return True

    def _forget(self, key: str, done: Future) -> None:
        with self._lock:
            entry = self._pending.get(key)
            if entry is not None and entry[0] is done:
                self._pending.pop(key, None)

    @staticmethod
    def _run(key: str, job: Job, token: Event) -> Any:
        if token.is_set():
            return None
        try:
            return job(token)
        except Exception:
            logger.exception("background_job_failed", job_key=key)
            raise


class PeriodicJob:
    """Runs `action` every `interval_seconds` on a daemon thread until stopped."""

    def __init__(self, name: str, interval_seconds: float, action: Callable[[], Any]) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self._action = action
        self._stop = Event()
        self._thread: Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = Thread(target=self._loop, name=f"periodic-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run_once(self) -> None:
        try:
            self._action()
        except Exception:
            # 周期ジョブは次回の実行で回復させる
            logger.exception("periodic_job_failed", job=self.name)

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.run_once()
