"""Tests for config/settings.py — defaults and environment overrides."""

from config.settings import DEFAULT_STREAM_BUFFER_SIZE, Settings, get_settings


def test_defaults(monkeypatch):
    for name in ("MATRIXFLOW_BASE_URL", "STREAM_BUFFER_SIZE", "STREAM_READ_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    s = Settings(_env_file=None)
    assert s.matrixflow_base_url == ""
    assert s.stream_buffer_size == DEFAULT_STREAM_BUFFER_SIZE == 4096
    assert s.stream_read_timeout == 0
    assert s.matrixflow_user_agent.startswith("matrixflow-sdk-python/")


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MATRIXFLOW_BASE_URL", "https://catalog.internal")
    monkeypatch.setenv("STREAM_READ_TIMEOUT", "90")
    s = Settings(_env_file=None)
    assert s.matrixflow_base_url == "https://catalog.internal"
    assert s.stream_read_timeout == 90


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
