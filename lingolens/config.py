"""
Runtime configuration for LingoLens.

Values come from a .env file at the project root (optional) or the process
environment:

    OLLAMA_URL=http://localhost:11434
    LINGOLENS_VISION_MODEL=llama3.2-vision:latest
    LINGOLENS_TEXT_MODEL=gemma3n:latest
    LINGOLENS_REQUEST_TIMEOUT=180
    LINGOLENS_NUM_PREDICT=2048
    LINGOLENS_SETTINGS_PATH=~/.lingolens/settings.json

User-facing settings (languages, theme, server URL) live in the settings
file; the values here are the defaults that file starts from.
"""

import os
from typing import Dict

from dotenv import load_dotenv

from .logger import logger

logger.env("Loading environment variables from .env file...")
if load_dotenv():
    logger.env_success("dotenv file loaded successfully")
else:
    logger.debug("No .env file found, using environment and defaults")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number, using {default}")
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default


DEFAULT_OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434").rstrip("/")

# Image detection needs a vision-capable model; everything else uses the text model
VISION_MODEL = os.getenv("LINGOLENS_VISION_MODEL", "llama3.2-vision:latest")
TEXT_MODEL = os.getenv("LINGOLENS_TEXT_MODEL", "gemma3n:latest")

# Substrings matched (case-insensitive) against /api/tags model names
ACCEPTED_MODELS = ("gemma3n", "llama3.2-vision")

REQUEST_TIMEOUT = _float_env("LINGOLENS_REQUEST_TIMEOUT", 180.0)
NUM_PREDICT = _int_env("LINGOLENS_NUM_PREDICT", 2048)

SETTINGS_PATH = os.path.expanduser(
    os.getenv("LINGOLENS_SETTINGS_PATH", os.path.join("~", ".lingolens", "settings.json"))
)

DETECTION_TEMPERATURE = 0.1
GENERATION_TEMPERATURE = 0.7

# Number of detected objects passed into generation prompts
MAX_PROMPT_OBJECTS = 5
MAX_VOCABULARY_ENTRIES = 10

DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 500

IMAGE_MIME_TYPES: Dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

# Pillow format name -> MIME type sent to the model; MPO is a multi-frame JPEG
IMAGE_FORMATS: Dict[str, str] = {
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}

SUPPORTED_LANGUAGES: Dict[str, str] = {
    "english": "English",
    "spanish": "Spanish",
    "french": "French",
    "german": "German",
    "italian": "Italian",
    "portuguese": "Portuguese",
    "chinese": "Chinese (Simplified)",
    "japanese": "Japanese",
    "korean": "Korean",
    "arabic": "Arabic",
}

DEFAULT_SOURCE_LANGUAGE = "english"
DEFAULT_TARGET_LANGUAGE = "spanish"

logger.env(f"Ollama server: {DEFAULT_OLLAMA_URL}")
logger.env(f"Vision model: {VISION_MODEL}, text model: {TEXT_MODEL}")
logger.env(f"Request timeout: {REQUEST_TIMEOUT:.0f}s, num_predict: {NUM_PREDICT}")


def language_name(code: str) -> str:
    """Display name for a language code; unknown codes map to the default target."""
    return SUPPORTED_LANGUAGES.get(code, SUPPORTED_LANGUAGES[DEFAULT_TARGET_LANGUAGE])
