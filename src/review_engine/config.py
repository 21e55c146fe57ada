from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DB_PATH = ".data/review_engine.sqlite3"
_STORE_BACKENDS = ("memory", "sqlite", "firestore")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Engine settings loaded from environment variables.

    環境変数から読み込まれるエンジン設定クラス。
    - store_backend: 永続化バックエンド（memory/sqlite/firestore）
    - session_overrun_tolerance: 目標時間に対するセッション超過許容倍率
    - analysis_window_days: 行動分析の対象期間（日）
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level / ルートのログレベル",
    )
    strict_mode: bool = Field(
        default=True,
        description="Fail fast on missing/invalid configuration (disable only for tests)",
    )

    # --- 永続化設定 ---
    store_backend: Literal["memory", "sqlite", "firestore"] = Field(
        default="sqlite",
        description="Persistent store backend / 永続化バックエンド",
    )
    store_db_path: str = Field(
        default=DEFAULT_DB_PATH,
        description="Path to the SQLite key-value database / SQLite KV ストアのパス",
    )
    firestore_project_id: str | None = Field(
        default=None,
        description="Firestore project id / Firestore のプロジェクトID",
    )
    firestore_emulator_host: str | None = Field(
        default=None,
        description="Firestore emulator host (host:port) / Firestore エミュレータのホスト",
    )
    firestore_collection: str = Field(
        default="review_engine_kv",
        description="Firestore collection holding key-value documents / KV ドキュメントを格納するコレクション",
    )

    # --- 復習セッション ---
    session_overrun_tolerance: float = Field(
        default=1.5,
        description=(
            "Multiplier on target duration before a session auto-completes / "
            "セッションを自動終了するまでの目標時間に対する倍率"
        ),
    )

    # --- 行動分析・通知最適化 ---
    analysis_window_days: int = Field(
        default=7,
        ge=1,
        description="Trailing window for behavior analysis (days) / 行動分析の対象期間（日）",
    )
    most_active_hours_count: int = Field(
        default=4,
        ge=1,
        le=24,
        description="How many most-active hours to keep / 保持する活動時間帯の数",
    )
    best_hours_count: int = Field(
        default=3,
        ge=1,
        le=24,
        description="How many best notification hours to derive / 通知に最適な時間帯の数",
    )
    behavior_analysis_interval_seconds: int = Field(
        default=60 * 60,
        ge=1,
        description="Cadence of the behavior analyzer (s) / 行動分析の実行間隔（秒）",
    )
    notification_optimize_interval_seconds: int = Field(
        default=60 * 60 * 24,
        ge=1,
        description="Cadence of notification optimization (s) / 通知最適化の実行間隔（秒）",
    )
    background_workers: int = Field(
        default=4,
        ge=1,
        description="Worker threads for background recomputation / バックグラウンド再計算のワーカー数",
    )
    reschedule_after_review: bool = Field(
        default=True,
        description="Recompute reminders after each recorded response / 回答ごとに通知を再計算する",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("store_backend", mode="before")
    @classmethod
    def _normalise_store_backend(cls, value: object) -> object:
        """大文字や前後空白を含む指定でも受け付けられるよう正規化する。"""

        if isinstance(value, str):
            cleaned = value.strip().lower()
            if cleaned in _STORE_BACKENDS:
                return cleaned
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        text = str(value or "INFO").strip().upper()
        if text not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return text

    @field_validator("session_overrun_tolerance", mode="after")
    @classmethod
    def _validate_overrun_tolerance(cls, value: float) -> float:
        if value < 1.0:
            raise ValueError("session_overrun_tolerance must be >= 1.0")
        return value

    @model_validator(mode="after")
    def _reject_volatile_store_in_production(self) -> "Settings":
        """本番環境でメモリストアを使うと再起動で学習履歴が消えるため拒否する。"""

        environment_name = (self.environment or "").strip().lower()
        if self.strict_mode and environment_name == "production" and self.store_backend == "memory":
            raise ValueError("STORE_BACKEND=memory is not allowed in production (strict mode)")
        return self


settings = Settings()
