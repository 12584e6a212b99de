from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any

from .config import DEFAULT_SOURCE_LANGUAGE, DEFAULT_TARGET_LANGUAGE, SUPPORTED_LANGUAGES


@dataclass(frozen=True)
class LanguagePair:
    """The language the learner knows (source) and the one being learned (target)."""
    source: str = DEFAULT_SOURCE_LANGUAGE
    target: str = DEFAULT_TARGET_LANGUAGE

    @classmethod
    def of(cls, source: Optional[str], target: Optional[str]) -> "LanguagePair":
        """Build a pair, replacing unset or unsupported codes with the defaults."""
        if source not in SUPPORTED_LANGUAGES:
            source = DEFAULT_SOURCE_LANGUAGE
        if target not in SUPPORTED_LANGUAGES:
            target = DEFAULT_TARGET_LANGUAGE
        return cls(source=source, target=target)


@dataclass
class DetectedObject:
    name: str
    confidence: float = 0.0          # 0.0–1.0
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectedObject":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Scene:
    setting: str = "unknown"
    location: str = "unknown"
    activity: str = "unknown"
    mood: str = "neutral"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scene":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class DetectionResult:
    """Objects and scene found in the image (or inferred from a description)."""
    objects: List[DetectedObject] = field(default_factory=list)
    scene: Scene = field(default_factory=Scene)

    def object_names(self, limit: Optional[int] = None) -> List[str]:
        """Names of the first `limit` objects, in detection order."""
        objects = self.objects if limit is None else self.objects[:limit]
        return [obj.name for obj in objects]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionResult":
        return cls(
            objects=[DetectedObject.from_dict(o) for o in data.get("objects", []) or []],
            scene=Scene.from_dict(data.get("scene", {}) or {}),
        )


@dataclass
class VocabularyEntry:
    word: str                        # Word in target language
    translation: str                 # Gloss in source language
    category: str = "noun"           # noun, verb, adjective, adverb, preposition, conjunction, interjection
    difficulty: str = "beginner"     # beginner, intermediate, advanced
    example: str = ""                # Example sentence in target language
    context: str = ""                # How the word relates to the scene
    phonetic: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VocabularyEntry":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Story:
    title: str = ""
    content: str = ""                # 150–300 words requested, not enforced
    difficulty: str = "beginner"
    word_count: int = 0
    key_vocabulary: List[str] = field(default_factory=list)
    moral: str = ""
    translation: str = ""            # Summary translation in source language

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Story":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class DialogueLine:
    speaker: str
    text: str                        # Target language
    translation: str = ""            # Source language

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DialogueLine":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Conversation:
    scenario: str = ""
    participants: List[str] = field(default_factory=list)
    difficulty: str = "beginner"
    dialogue: List[DialogueLine] = field(default_factory=list)
    cultural_notes: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        return cls(
            scenario=data.get("scenario", ""),
            participants=list(data.get("participants", []) or []),
            difficulty=data.get("difficulty", "beginner"),
            dialogue=[DialogueLine.from_dict(line) for line in data.get("dialogue", []) or []],
            cultural_notes=data.get("cultural_notes", ""),
        )


@dataclass
class AnalysisResult:
    """
    Aggregate output of one pipeline run.

    Each field is filled only by its own stage, either with the model's
    output or with the stage fallback.
    """
    detection: Optional[DetectionResult] = None
    vocabulary: Optional[List[VocabularyEntry]] = None
    story: Optional[Story] = None
    conversation: Optional[Conversation] = None

    def is_empty(self) -> bool:
        return all(
            part is None for part in (self.detection, self.vocabulary, self.story, self.conversation)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Flat JSON-ready dict; absent stages are omitted."""
        data: Dict[str, Any] = {}
        if self.detection is not None:
            data["detection"] = self.detection.to_dict()
        if self.vocabulary is not None:
            data["vocabulary"] = [asdict(entry) for entry in self.vocabulary]
        if self.story is not None:
            data["story"] = asdict(self.story)
        if self.conversation is not None:
            data["conversation"] = asdict(self.conversation)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        vocabulary = data.get("vocabulary")
        return cls(
            detection=DetectionResult.from_dict(data["detection"]) if data.get("detection") is not None else None,
            vocabulary=[VocabularyEntry.from_dict(v) for v in vocabulary] if vocabulary is not None else None,
            story=Story.from_dict(data["story"]) if data.get("story") is not None else None,
            conversation=Conversation.from_dict(data["conversation"]) if data.get("conversation") is not None else None,
        )
