import os
from typing import Optional

DEFAULT_ENV = "development"

_SETTINGS_BY_ENV = {
    "dev": "config.development",
    "development": "config.development",
    "prod": "config.production",
    "production": "config.production",
    "test": "config.testing",
    "testing": "config.testing",
}


def get_settings_module(env: Optional[str] = None) -> str:
    """Dotted path of the settings module for `env` (defaults to $APP_ENV).

    Unknown names fall back to development settings.
    """
    name = (env or os.getenv("APP_ENV") or DEFAULT_ENV).strip().lower()
    return _SETTINGS_BY_ENV.get(name, _SETTINGS_BY_ENV[DEFAULT_ENV])
