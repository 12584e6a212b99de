"""
Prompt templates for each pipeline stage.

Every template takes an explicit parameter object and returns a PromptPair,
so the fields a stage asks for stay next to the schema it is validated
against (see schemas.py).
"""

from dataclasses import dataclass
from typing import Tuple

from .config import MAX_PROMPT_OBJECTS, MAX_VOCABULARY_ENTRIES, language_name
from .models import DetectionResult, LanguagePair, Scene


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str


@dataclass(frozen=True)
class DescriptionParams:
    """Free-text scene description typed by the learner."""
    description: str


@dataclass(frozen=True)
class SceneContext:
    """Everything a generation stage knows about the analysed scene."""
    languages: LanguagePair
    objects: Tuple[str, ...]
    scene: Scene

    @classmethod
    def from_detection(
        cls,
        detection: DetectionResult,
        languages: LanguagePair,
        limit: int = MAX_PROMPT_OBJECTS,
    ) -> "SceneContext":
        return cls(
            languages=languages,
            objects=tuple(detection.object_names(limit)),
            scene=detection.scene,
        )

    @property
    def target(self) -> str:
        return language_name(self.languages.target)

    @property
    def source(self) -> str:
        return language_name(self.languages.source)

    def describe(self) -> str:
        objects = ", ".join(self.objects) if self.objects else "none detected"
        return (
            f"- Setting: {self.scene.setting}\n"
            f"- Location: {self.scene.location}\n"
            f"- Activity: {self.scene.activity}\n"
            f"- Mood: {self.scene.mood}\n"
            f"- Objects present: {objects}"
        )


_DETECTION_FORMAT = (
    "{\n"
    '  "objects": [\n'
    '    {"name": "object name", "confidence": 0.95, "description": "short description"}\n'
    "  ],\n"
    '  "scene": {\n'
    '    "setting": "place or environment of the picture",\n'
    '    "location": "description of location type",\n'
    '    "activity": "what is happening in the scene",\n'
    '    "mood": "atmosphere or mood of the scene"\n'
    "  }\n"
    "}"
)


def image_detection_prompt() -> PromptPair:
    """Literal extraction of what is visible in an attached image."""
    return PromptPair(
        system=(
            "You are an expert computer vision system. Analyze images to identify objects, "
            "people, animals, locations, activities, and scenes with high accuracy."
        ),
        user=(
            "Please analyze this image and identify all visible elements. "
            "Confidence values must be between 0 and 1. "
            f"Respond with a JSON object of this shape:\n{_DETECTION_FORMAT}"
        ),
    )


def description_detection_prompt(params: DescriptionParams) -> PromptPair:
    """Infer plausible scene contents from a description; there is no image."""
    return PromptPair(
        system=(
            "You are an expert scene analyst. You are given a written description of a scene, "
            "not an image. Infer the objects, location, activity and mood that such a scene "
            "would plausibly contain."
        ),
        user=(
            f'Scene description: "{params.description.strip()}"\n\n'
            "List the objects that would most likely be present, most important first, "
            "with a confidence between 0 and 1 reflecting how certain the description makes "
            f"them. Respond with a JSON object of this shape:\n{_DETECTION_FORMAT}"
        ),
    )


def vocabulary_prompt(context: SceneContext) -> PromptPair:
    target, source = context.target, context.source
    return PromptPair(
        system=(
            f"You are an expert language teacher specializing in {target}. Create vocabulary "
            f"lists for {source}-speaking learners based on image content."
        ),
        user=(
            f"Based on this scene analysis:\n{context.describe()}\n\n"
            f"Create a vocabulary list in {target} for language learners. Focus on words "
            "that would be useful in this context. Respond with a JSON object:\n"
            "{\n"
            '  "vocabulary": [\n'
            "    {\n"
            f'      "word": "word in {target}",\n'
            f'      "translation": "translation in {source}",\n'
            '      "category": "noun|verb|adjective|adverb|preposition|conjunction|interjection",\n'
            '      "difficulty": "beginner|intermediate|advanced",\n'
            f'      "example": "example sentence in {target}",\n'
            '      "context": "how this word relates to the scene",\n'
            '      "phonetic": "pronunciation hint"\n'
            "    }\n"
            "  ]\n"
            "}\n\n"
            f"Include {MAX_VOCABULARY_ENTRIES} relevant words, prioritizing practical vocabulary."
        ),
    )


def story_prompt(context: SceneContext) -> PromptPair:
    target, source = context.target, context.source
    return PromptPair(
        system=(
            f"You are a creative storyteller and language teacher. Write engaging short stories "
            f"in {target} that help language learners practice reading comprehension."
        ),
        user=(
            f"Create an engaging short story in {target} based on this scene:\n"
            f"{context.describe()}\n\n"
            "Respond with a JSON object:\n"
            "{\n"
            '  "story": {\n'
            f'    "title": "story title in {target}",\n'
            f'    "content": "complete story text in {target}",\n'
            '    "difficulty": "beginner|intermediate|advanced",\n'
            '    "word_count": 0,\n'
            '    "key_vocabulary": ["word1", "word2", "word3"],\n'
            f'    "moral": "lesson or takeaway from the story, in {source}",\n'
            f'    "translation": "short summary of the story in {source}"\n'
            "  }\n"
            "}\n\n"
            "Make the story 150-300 words, appropriate for language learners, and incorporate "
            "cultural elements."
        ),
    )


def conversation_prompt(context: SceneContext) -> PromptPair:
    target, source = context.target, context.source
    return PromptPair(
        system=(
            f"You are an expert dialogue creator and language teacher. Create realistic "
            f"conversations in {target} that would naturally occur in the given context."
        ),
        user=(
            f"Create a realistic dialogue in {target} based on this scene:\n"
            f"{context.describe()}\n\n"
            "Respond with a JSON object:\n"
            "{\n"
            '  "scenario": "description of conversation context",\n'
            '  "participants": ["person1", "person2"],\n'
            '  "difficulty": "beginner|intermediate|advanced",\n'
            '  "dialogue": [\n'
            f'    {{"speaker": "person1", "text": "line in {target}", "translation": "line in {source}"}}\n'
            "  ],\n"
            '  "cultural_notes": "relevant cultural context"\n'
            "}\n\n"
            "Create a single conversation scenario with 5-6 exchanges between at least two participants."
        ),
    )
