"""Shared fixtures: canned stage responses and a fake model client."""

from __future__ import annotations

import io
import os
import tempfile
import threading
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

# Keep the real settings file out of test runs
os.environ.setdefault("LINGOLENS_SETTINGS_PATH", os.path.join(tempfile.gettempdir(), "lingolens-test-settings.json"))

from lingolens.inputs import ImageInput, image_from_bytes  # noqa: E402
from lingolens.models import LanguagePair  # noqa: E402


DETECTION_RESPONSE: Dict[str, Any] = {
    "objects": [
        {"name": "cat", "confidence": 0.95, "description": "a grey cat"},
        {"name": "chair", "confidence": 0.9, "description": "wooden chair"},
        {"name": "window", "confidence": 0.8, "description": "open window"},
        {"name": "book", "confidence": 0.7, "description": "closed book"},
        {"name": "lamp", "confidence": 0.6, "description": "reading lamp"},
        {"name": "rug", "confidence": 0.5, "description": "red rug"},
        {"name": "plant", "confidence": 0.4, "description": "small plant"},
    ],
    "scene": {
        "setting": "living room",
        "location": "indoor home",
        "activity": "a cat resting",
        "mood": "calm",
    },
}

VOCABULARY_RESPONSE: Dict[str, Any] = {
    "vocabulary": [
        {
            "word": "gato",
            "translation": "cat",
            "category": "noun",
            "difficulty": "beginner",
            "example": "El gato duerme.",
            "context": "The cat on the chair",
            "phonetic": "GAH-toh",
        },
        {
            "word": "silla",
            "translation": "chair",
            "category": "noun",
            "difficulty": "beginner",
            "example": "La silla es de madera.",
            "context": "The cat sits on it",
        },
    ]
}

STORY_RESPONSE: Dict[str, Any] = {
    "story": {
        "title": "El gato tranquilo",
        "content": "Había una vez un gato que dormía en una silla.",
        "difficulty": "beginner",
        "word_count": 10,
        "key_vocabulary": ["gato", "silla"],
        "moral": "Rest is important.",
        "translation": "A cat sleeps on a chair.",
    }
}

CONVERSATION_RESPONSE: Dict[str, Any] = {
    "scenario": "Two friends talk about a cat",
    "participants": ["Ana", "Luis"],
    "difficulty": "beginner",
    "dialogue": [
        {"speaker": "Ana", "text": "¡Mira el gato!", "translation": "Look at the cat!"},
        {"speaker": "Luis", "text": "Está durmiendo.", "translation": "It is sleeping."},
    ],
    "cultural_notes": "Cats are popular pets in Spain.",
}

RESPONSES_BY_SCHEMA: Dict[str, Any] = {
    "DetectionOutput": DETECTION_RESPONSE,
    "VocabularyOutput": VOCABULARY_RESPONSE,
    "StoryOutput": STORY_RESPONSE,
    "ConversationOutput": CONVERSATION_RESPONSE,
}


class FakeClient:
    """
    Stands in for OllamaClient.

    Responses are keyed by the title of the schema sent with the request;
    a value that is an Exception instance is raised instead of returned.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        self.responses = dict(RESPONSES_BY_SCHEMA)
        self.responses.update(overrides or {})
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def generate(
        self,
        prompt: str,
        system_prompt: str,
        temperature: float,
        model: str,
        schema: Optional[Dict[str, Any]] = None,
        image_base64: Optional[str] = None,
    ) -> Any:
        title = (schema or {}).get("title", "")
        with self._lock:
            self.calls.append(
                {
                    "schema": title,
                    "prompt": prompt,
                    "system": system_prompt,
                    "temperature": temperature,
                    "model": model,
                    "image_base64": image_base64,
                }
            )
        response = self.responses[title]
        if isinstance(response, Exception):
            raise response
        return response

    def schemas_called(self) -> List[str]:
        return [call["schema"] for call in self.calls]


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def client_factory():
    return FakeClient


@pytest.fixture
def languages() -> LanguagePair:
    return LanguagePair(source="english", target="spanish")


def make_png_bytes(size: tuple = (8, 8), color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png_bytes()


@pytest.fixture
def image_input(png_bytes: bytes) -> ImageInput:
    return image_from_bytes(png_bytes, "cat.png")
