"""
Structured output schemas for each generation stage.

Each stage has a pydantic model describing the JSON the model must return.
The same model serves two purposes:

1. Its JSON Schema is sent to Ollama as the ``format`` of the request, so the
   server constrains generation to that shape.
2. The parsed response is validated against it before it is merged into an
   AnalysisResult; anything that does not fit raises ValidationFailed.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, Field, ValidationError

from .errors import ValidationFailed

Difficulty = Literal["beginner", "intermediate", "advanced"]
WordCategory = Literal[
    "noun", "verb", "adjective", "adverb", "preposition", "conjunction", "interjection"
]


class Stage(str, Enum):
    """One model invocation step of the analysis pipeline."""
    DETECTION = "detection"
    VOCABULARY = "vocabulary"
    STORY = "story"
    CONVERSATION = "conversation"


# ---------------------------------------------------------------------------
# Object / scene detection
# ---------------------------------------------------------------------------

class DetectedObjectOutput(BaseModel):
    name: str = Field(description="Object name")
    confidence: float = Field(ge=0.0, le=1.0, description="Detection confidence between 0 and 1")
    description: str = Field(description="Short description of the object")


class SceneOutput(BaseModel):
    setting: str = Field(description="Place or environment of the picture")
    location: str = Field(description="Kind of location")
    activity: str = Field(description="What is happening in the scene")
    mood: str = Field(description="Atmosphere or mood of the scene")


class DetectionOutput(BaseModel):
    objects: List[DetectedObjectOutput]
    scene: SceneOutput


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

class VocabularyItemOutput(BaseModel):
    word: str = Field(description="Word in the target language")
    translation: str = Field(description="Translation in the source language")
    category: WordCategory
    difficulty: Difficulty
    example: str = Field(description="Example sentence in the target language")
    context: str = Field(description="How the word relates to the scene")
    phonetic: Optional[str] = Field(default=None, description="Pronunciation hint")


class VocabularyOutput(BaseModel):
    vocabulary: List[VocabularyItemOutput]


# ---------------------------------------------------------------------------
# Story
# ---------------------------------------------------------------------------

class StoryBody(BaseModel):
    title: str
    content: str
    difficulty: Difficulty
    word_count: int = Field(ge=0)
    key_vocabulary: List[str]
    moral: str
    translation: str = Field(description="Summary of the story in the source language")


class StoryOutput(BaseModel):
    story: StoryBody


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

class DialogueLineOutput(BaseModel):
    speaker: str
    text: str = Field(description="Line in the target language")
    translation: str = Field(description="Line in the source language")


class ConversationOutput(BaseModel):
    scenario: str
    participants: List[str] = Field(min_length=2)
    difficulty: Difficulty
    dialogue: List[DialogueLineOutput]
    cultural_notes: str


_STAGE_MODELS: Dict[Stage, Type[BaseModel]] = {
    Stage.DETECTION: DetectionOutput,
    Stage.VOCABULARY: VocabularyOutput,
    Stage.STORY: StoryOutput,
    Stage.CONVERSATION: ConversationOutput,
}


def schema_model(stage: Stage) -> Type[BaseModel]:
    return _STAGE_MODELS[Stage(stage)]


def schema_for(stage: Stage) -> Dict[str, Any]:
    """JSON Schema sent as the ``format`` of a constrained generation request."""
    return schema_model(stage).model_json_schema()


def validate_stage_output(stage: Stage, data: Any) -> BaseModel:
    """Validate parsed response data for a stage, raising ValidationFailed on mismatch."""
    stage = Stage(stage)
    try:
        return _STAGE_MODELS[stage].model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(stage.value, e.errors()) from e
