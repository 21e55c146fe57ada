import pytest

from review_engine.config import Settings


def test_defaults():
    settings = Settings(strict_mode=False, _env_file=None)

    assert settings.session_overrun_tolerance == 1.5
    assert settings.analysis_window_days == 7
    assert settings.most_active_hours_count == 4
    assert settings.best_hours_count == 3
    assert settings.behavior_analysis_interval_seconds == 3600
    assert settings.notification_optimize_interval_seconds == 86400


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STORE_BACKEND", "  SQLite ")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("SESSION_OVERRUN_TOLERANCE", "2.0")
    monkeypatch.setenv("ANALYSIS_WINDOW_DAYS", "14")

    settings = Settings(_env_file=None)

    assert settings.store_backend == "sqlite"
    assert settings.log_level == "DEBUG"
    assert settings.session_overrun_tolerance == 2.0
    assert settings.analysis_window_days == 14


def test_unknown_store_backend_is_rejected():
    with pytest.raises(ValueError):
        Settings(store_backend="redis", _env_file=None)


def test_unknown_log_level_is_rejected():
    with pytest.raises(ValueError, match="log_level must be one of"):
        Settings(log_level="chatty", _env_file=None)


def test_overrun_tolerance_below_one_is_rejected():
    with pytest.raises(ValueError, match="session_overrun_tolerance must be >= 1.0"):
        Settings(session_overrun_tolerance=0.5, _env_file=None)


def test_strict_mode_rejects_memory_store_in_production():
    with pytest.raises(ValueError, match="STORE_BACKEND=memory is not allowed in production"):
        Settings(environment="production", store_backend="memory", strict_mode=True, _env_file=None)


def test_non_strict_mode_allows_memory_store_in_production():
    settings = Settings(environment="production", store_backend="memory", strict_mode=False, _env_file=None)

    assert settings.store_backend == "memory"
