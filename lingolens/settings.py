"""
Persisted user settings.

The settings file is a single JSON document:

    {"language": "spanish", "sourceLanguage": "english",
     "theme": "dark", "ollamaUrl": "http://localhost:11434"}

It is read once at startup (defaults are used when it is missing or
unreadable) and rewritten whenever a setting changes.
"""

import json
import os
from dataclasses import dataclass, replace
from typing import Any, Dict

import httpx

from .config import (
    DEFAULT_OLLAMA_URL,
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    SETTINGS_PATH,
    SUPPORTED_LANGUAGES,
)
from .logger import logger
from .models import LanguagePair

THEMES = ("dark", "light")


def validate_server_url(value: Any) -> str:
    """Normalize a model server URL; anything but an absolute http(s) URL raises ValueError."""
    url = str(value or "").strip().rstrip("/")
    if not url:
        raise ValueError("Model server URL must not be empty")
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ValueError(f"Invalid model server URL {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValueError(f"Model server URL must start with http:// or https:// and name a host, got {url!r}")
    return url


@dataclass(frozen=True)
class Settings:
    target_language: str = DEFAULT_TARGET_LANGUAGE
    source_language: str = DEFAULT_SOURCE_LANGUAGE
    theme: str = "dark"
    model_server_url: str = DEFAULT_OLLAMA_URL

    @property
    def languages(self) -> LanguagePair:
        return LanguagePair.of(self.source_language, self.target_language)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.target_language,
            "sourceLanguage": self.source_language,
            "theme": self.theme,
            "ollamaUrl": self.model_server_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Build settings from a stored document; bad or missing values use defaults."""
        defaults = cls()
        target = data.get("language")
        source = data.get("sourceLanguage")
        theme = data.get("theme")
        url = data.get("ollamaUrl")
        return cls(
            target_language=target if target in SUPPORTED_LANGUAGES else defaults.target_language,
            source_language=source if source in SUPPORTED_LANGUAGES else defaults.source_language,
            theme=theme if theme in THEMES else defaults.theme,
            model_server_url=url.strip().rstrip("/") if isinstance(url, str) and url.strip() else defaults.model_server_url,
        )


def load_settings(path: str = SETTINGS_PATH) -> Settings:
    if not os.path.exists(path):
        logger.env(f"No settings file at {path}, using defaults")
        return Settings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read settings from {path} ({e}), using defaults")
        return Settings()
    if not isinstance(data, dict):
        logger.warning(f"Settings file {path} is not a JSON object, using defaults")
        return Settings()
    settings = Settings.from_dict(data)
    logger.env_success(f"Settings loaded: {settings.source_language} → {settings.target_language}, {settings.theme} theme")
    return settings


def save_settings(settings: Settings, path: str = SETTINGS_PATH) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings.to_dict(), f, indent=2)
    logger.debug(f"Settings saved to {path}")


class SettingsStore:
    """Owns the process-wide settings and writes every change to disk."""

    def __init__(self, path: str = SETTINGS_PATH) -> None:
        self.path = path
        self.settings = load_settings(path)

    @property
    def languages(self) -> LanguagePair:
        return self.settings.languages

    def update(self, **changes: Any) -> Settings:
        """
        Apply changes (field names of Settings) and persist them.

        Invalid language codes, themes or server URLs raise ValueError. If the
        file cannot be written the OSError propagates and the in-memory
        settings stay as they were. Changing languages does not trigger a new
        analysis.
        """
        for key in ("target_language", "source_language"):
            if key in changes and changes[key] not in SUPPORTED_LANGUAGES:
                raise ValueError(f"Unsupported language: {changes[key]}")
        if "theme" in changes and changes["theme"] not in THEMES:
            raise ValueError(f"Unknown theme: {changes['theme']}")
        if "model_server_url" in changes:
            changes["model_server_url"] = validate_server_url(changes["model_server_url"])

        updated = replace(self.settings, **changes)
        save_settings(updated, self.path)
        self.settings = updated
        return self.settings

    def toggle_theme(self) -> Settings:
        return self.update(theme="light" if self.settings.theme == "dark" else "dark")
