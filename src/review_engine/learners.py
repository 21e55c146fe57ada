"""学習者プロファイル（UserConfig / NotificationStrategy）の初期化。

呼び出し側は該当学習者のロックを保持した状態で使うこと。
"""

from __future__ import annotations

from .models import NotificationStrategy, UserConfig
from .store import EngineRepository


def ensure_user_config(repo: EngineRepository, learner_id: str) -> UserConfig:
    config = repo.load_config(learner_id)
    if config is None:
        config = UserConfig(learner_id=learner_id)
        repo.save_config(config)
        repo.register_learner(learner_id)
    return config


def ensure_strategy(repo: EngineRepository, learner_id: str) -> NotificationStrategy:
    strategy = repo.load_strategy(learner_id)
    if strategy is None:
        config = ensure_user_config(repo, learner_id)
        strategy = NotificationStrategy(learner_id=learner_id)
        strategy.optimization.frequency = config.notifications.frequency
        repo.save_strategy(strategy)
    return strategy


def ensure_profile(repo: EngineRepository, learner_id: str) -> tuple[UserConfig, NotificationStrategy]:
    config = ensure_user_config(repo, learner_id)
    strategy = ensure_strategy(repo, learner_id)
    repo.register_learner(learner_id)
    return config, strategy
