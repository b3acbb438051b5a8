import importlib

import pytest

from config import get_settings_module


@pytest.mark.parametrize(
    "env, module",
    [
        ("production", "config.production"),
        ("PROD", "config.production"),
        ("test", "config.testing"),
        ("staging", "config.development"),
    ],
)
def test_settings_module_from_env(monkeypatch, env, module):
    monkeypatch.setenv("APP_ENV", env)
    assert get_settings_module() == module


def test_default_is_development(monkeypatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    assert get_settings_module() == "config.development"


def test_testing_settings():
    settings = importlib.import_module(get_settings_module("testing"))
    assert settings.TESTING is True
    assert settings.DEFAULT_CURRENCY == "TZS"
    assert settings.HOSTEL_STATS_STALE_SECONDS >= settings.HOSTEL_STATS_FRESH_SECONDS
