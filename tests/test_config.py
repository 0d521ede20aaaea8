from __future__ import annotations

from app.config import get_settings, reset_settings_cache
from app.main import create_app


def test_timeout_from_environment(monkeypatch):
    monkeypatch.setenv("TODO_REQUEST_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("TODO_LOG_LEVEL", "debug")
    reset_settings_cache()
    try:
        settings = get_settings()
        assert settings.request_timeout_seconds == 2.5
        app = create_app()
        assert app.state.settings.request_timeout_seconds == 2.5
    finally:
        reset_settings_cache()


def test_defaults(monkeypatch):
    monkeypatch.delenv("TODO_REQUEST_TIMEOUT_SECONDS", raising=False)
    reset_settings_cache()
    try:
        assert get_settings().request_timeout_seconds == 10.0
    finally:
        reset_settings_cache()
