from __future__ import annotations

import pytest

from kimten.infrastructure.config.settings import get_settings


def test_defaults():
    settings = get_settings()
    assert settings.memory_limit == 10
    assert settings.hops == 10
    assert settings.context_char_limit == 4000
    assert settings.log_format == "json"
    assert settings.service_name == "kimten"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("KIMTEN_CONTEXT_CHAR_LIMIT", "250")
    monkeypatch.setenv("KIMTEN_LOG_LEVEL", "DEBUG")
    settings = get_settings()
    assert settings.context_char_limit == 250
    assert settings.log_level == "DEBUG"


def test_settings_are_cached():
    assert get_settings() is get_settings()


def test_bad_integer_is_reported(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("KIMTEN_HOPS", "many")
    with pytest.raises(RuntimeError, match="KIMTEN_HOPS"):
        get_settings()
