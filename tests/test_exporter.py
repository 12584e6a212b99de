"""Tests for exporting and importing analysis documents."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lingolens.errors import ExportError
from lingolens.exporter import (
    AnalysisDocument,
    InputSummary,
    default_export_filename,
    export_analysis,
    import_analysis,
)
from lingolens.inputs import DescriptionInput
from lingolens.models import AnalysisResult, LanguagePair

from conftest import CONVERSATION_RESPONSE, DETECTION_RESPONSE, STORY_RESPONSE, VOCABULARY_RESPONSE


def _result() -> AnalysisResult:
    return AnalysisResult.from_dict(
        {
            "detection": DETECTION_RESPONSE,
            "vocabulary": VOCABULARY_RESPONSE["vocabulary"],
            "story": STORY_RESPONSE["story"],
            "conversation": CONVERSATION_RESPONSE,
        }
    )


def test_export_then_import_restores_result(tmp_path: Path, image_input) -> None:
    """An exported analysis imports back to an identical result."""
    document = AnalysisDocument(
        languages=LanguagePair(source="german", target="italian"),
        input=InputSummary.from_input(image_input),
        result=_result(),
    )
    path = export_analysis(document, str(tmp_path / "analysis.json"))

    restored = import_analysis(path)

    assert restored.result == document.result
    assert restored.languages == document.languages
    assert restored.input == InputSummary(type="image", name="cat.png", size=image_input.size)
    assert restored.timestamp == document.timestamp


def test_document_shape(tmp_path: Path) -> None:
    document = AnalysisDocument(
        languages=LanguagePair(source="english", target="french"),
        input=InputSummary.from_input(DescriptionInput("A sunny beach with umbrellas")),
        result=_result(),
        timestamp="2024-05-01T10:00:00.000Z",
    )
    path = tmp_path / "doc.json"
    export_analysis(document, str(path))

    data = json.loads(path.read_text(encoding="utf-8"))

    assert data["timestamp"] == "2024-05-01T10:00:00.000Z"
    assert data["language"] == "french"
    assert data["sourceLanguage"] == "english"
    assert data["inputMode"] == "description"
    assert data["input"] == {"type": "description", "description": "A sunny beach with umbrellas"}
    assert set(data["results"]) == {"detection", "vocabulary", "story", "conversation"}
    assert data["results"]["vocabulary"][0]["word"] == "gato"


def test_partial_result_round_trip(tmp_path: Path) -> None:
    """Sections that were never produced stay absent after import."""
    result = AnalysisResult.from_dict({"detection": DETECTION_RESPONSE})
    document = AnalysisDocument(
        languages=LanguagePair(),
        input=InputSummary(type="description", description="A quiet library at night"),
        result=result,
    )
    path = export_analysis(document, str(tmp_path / "partial.json"))

    restored = import_analysis(path)

    assert restored.result.story is None
    assert restored.result.vocabulary is None
    assert restored.result.detection == result.detection


def test_import_rejects_malformed_section(tmp_path: Path) -> None:
    data = {
        "timestamp": "2024-05-01T10:00:00.000Z",
        "language": "spanish",
        "sourceLanguage": "english",
        "inputMode": "image",
        "input": {"type": "image", "name": "x.png", "size": 10},
        "results": {"story": {"title": "Missing everything else"}},
    }
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(data), encoding="utf-8")

    with pytest.raises(ExportError):
        import_analysis(str(path))


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[1, 2, 3]",
        json.dumps({"input": {"type": "image"}}),
        json.dumps({"input": {"type": "video"}, "results": {}}),
    ],
)
def test_import_rejects_invalid_documents(tmp_path: Path, content: str) -> None:
    path = tmp_path / "broken.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ExportError):
        import_analysis(str(path))


def test_import_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ExportError):
        import_analysis(str(tmp_path / "nope.json"))


def test_export_to_unwritable_path(tmp_path: Path) -> None:
    document = AnalysisDocument(
        languages=LanguagePair(),
        input=InputSummary(type="description", description="A quiet library at night"),
        result=AnalysisResult(),
    )
    with pytest.raises(ExportError):
        export_analysis(document, str(tmp_path / "missing-dir" / "out.json"))


def test_unsupported_language_codes_fall_back_to_defaults(tmp_path: Path) -> None:
    data = {
        "language": "klingon",
        "sourceLanguage": None,
        "input": {"type": "description", "description": "A quiet library at night"},
        "results": {},
    }
    path = tmp_path / "doc.json"
    path.write_text(json.dumps(data), encoding="utf-8")

    document = import_analysis(str(path))

    assert document.languages == LanguagePair(source="english", target="spanish")


def test_default_export_filename() -> None:
    name = default_export_filename()
    assert name.startswith("language-learning-analysis-")
    assert name.endswith(".json")
