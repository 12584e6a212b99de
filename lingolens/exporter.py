"""
Export and import of analysis documents.

An exported document records when and for which languages an analysis was
made, what the input was (image name/size or the description text) and the
full AnalysisResult. Importing one restores the result without contacting
the model server; every section is re-validated against its stage schema.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import ExportError, ValidationFailed
from .inputs import AnalysisInput, DescriptionInput, ImageInput
from .logger import logger
from .models import AnalysisResult, LanguagePair
from .schemas import Stage, validate_stage_output


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def default_export_filename() -> str:
    return f"language-learning-analysis-{int(time.time() * 1000)}.json"


@dataclass
class InputSummary:
    """What was analysed; image bytes are never exported."""
    type: str                                   # "image" or "description"
    name: Optional[str] = None
    size: Optional[int] = None
    description: Optional[str] = None

    @classmethod
    def from_input(cls, analysis_input: AnalysisInput) -> "InputSummary":
        if isinstance(analysis_input, ImageInput):
            return cls(type="image", name=analysis_input.name, size=analysis_input.size)
        if isinstance(analysis_input, DescriptionInput):
            return cls(type="description", description=analysis_input.text)
        raise ExportError(f"Unsupported input type: {type(analysis_input).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        if self.type == "image":
            return {"type": "image", "name": self.name, "size": self.size}
        return {"type": "description", "description": self.description}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InputSummary":
        input_type = data.get("type")
        if input_type == "image":
            return cls(type="image", name=data.get("name"), size=data.get("size"))
        if input_type == "description":
            return cls(type="description", description=data.get("description"))
        raise ExportError(f"Unknown input type in document: {input_type!r}")


@dataclass
class AnalysisDocument:
    languages: LanguagePair
    input: InputSummary
    result: AnalysisResult
    timestamp: str = field(default_factory=_utc_timestamp)

    @property
    def input_mode(self) -> str:
        return self.input.type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "language": self.languages.target,
            "sourceLanguage": self.languages.source,
            "inputMode": self.input_mode,
            "input": self.input.to_dict(),
            "results": self.result.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisDocument":
        if not isinstance(data, dict):
            raise ExportError("Analysis document must be a JSON object")
        results = data.get("results")
        if not isinstance(results, dict):
            raise ExportError("Analysis document has no 'results' object")
        input_data = data.get("input")
        if not isinstance(input_data, dict):
            raise ExportError("Analysis document has no 'input' object")

        _validate_results(results)
        return cls(
            languages=LanguagePair.of(data.get("sourceLanguage"), data.get("language")),
            input=InputSummary.from_dict(input_data),
            result=AnalysisResult.from_dict(results),
            timestamp=str(data.get("timestamp") or _utc_timestamp()),
        )


def _validate_results(results: Dict[str, Any]) -> None:
    """Check every present section against the schema its stage produced it with."""
    wrapped = {
        Stage.DETECTION: results.get("detection"),
        Stage.VOCABULARY: {"vocabulary": results["vocabulary"]} if results.get("vocabulary") is not None else None,
        Stage.STORY: {"story": results["story"]} if results.get("story") is not None else None,
        Stage.CONVERSATION: results.get("conversation"),
    }
    for stage, section in wrapped.items():
        if section is None:
            continue
        try:
            validate_stage_output(stage, section)
        except ValidationFailed as e:
            raise ExportError(f"Section '{stage.value}' of the document is malformed") from e


def export_analysis(document: AnalysisDocument, path: str) -> str:
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document.to_dict(), f, indent=2, ensure_ascii=False)
    except OSError as e:
        logger.error(f"Export to {path} failed: {e}")
        raise ExportError(f"Could not write {path}: {e}") from e
    logger.io(f"Analysis exported to {path}")
    return path


def import_analysis(path: str) -> AnalysisDocument:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Import from {path} failed: {e}")
        raise ExportError(f"Could not read {path}: {e}") from e

    document = AnalysisDocument.from_dict(data)
    logger.io(f"Imported analysis from {path} ({document.input_mode}, {document.languages.target})")
    return document
