"""Tests for stage output schemas."""

from __future__ import annotations

import copy

import pytest

from lingolens.errors import ValidationFailed
from lingolens.schemas import Stage, schema_for, validate_stage_output

from conftest import CONVERSATION_RESPONSE, DETECTION_RESPONSE, STORY_RESPONSE, VOCABULARY_RESPONSE


class TestValidateStageOutput:
    """Tests for validate_stage_output."""

    @pytest.mark.parametrize(
        ("stage", "data"),
        [
            (Stage.DETECTION, DETECTION_RESPONSE),
            (Stage.VOCABULARY, VOCABULARY_RESPONSE),
            (Stage.STORY, STORY_RESPONSE),
            (Stage.CONVERSATION, CONVERSATION_RESPONSE),
        ],
    )
    def test_valid_outputs(self, stage: Stage, data: dict) -> None:
        """Test that well-formed responses pass for every stage."""
        validated = validate_stage_output(stage, data)
        assert validated.model_dump()

    def test_confidence_out_of_range(self) -> None:
        """Test that a confidence above 1 is rejected."""
        data = copy.deepcopy(DETECTION_RESPONSE)
        data["objects"][0]["confidence"] = 1.5

        with pytest.raises(ValidationFailed) as exc_info:
            validate_stage_output(Stage.DETECTION, data)

        assert exc_info.value.stage == "detection"
        assert exc_info.value.details

    def test_unknown_word_category(self) -> None:
        """Test that categories outside the closed set are rejected."""
        data = copy.deepcopy(VOCABULARY_RESPONSE)
        data["vocabulary"][0]["category"] = "pronoun"

        with pytest.raises(ValidationFailed):
            validate_stage_output(Stage.VOCABULARY, data)

    def test_phonetic_is_optional(self) -> None:
        validated = validate_stage_output(Stage.VOCABULARY, VOCABULARY_RESPONSE)
        assert validated.vocabulary[1].phonetic is None

    def test_story_missing_field(self) -> None:
        data = copy.deepcopy(STORY_RESPONSE)
        del data["story"]["moral"]

        with pytest.raises(ValidationFailed):
            validate_stage_output(Stage.STORY, data)

    def test_conversation_needs_two_participants(self) -> None:
        data = copy.deepcopy(CONVERSATION_RESPONSE)
        data["participants"] = ["Ana"]

        with pytest.raises(ValidationFailed):
            validate_stage_output(Stage.CONVERSATION, data)

    def test_non_object_payload(self) -> None:
        with pytest.raises(ValidationFailed):
            validate_stage_output(Stage.STORY, ["not", "an", "object"])

    def test_accepts_stage_name_string(self) -> None:
        validated = validate_stage_output("conversation", CONVERSATION_RESPONSE)
        assert validated.participants == ["Ana", "Luis"]


def test_schema_for_describes_required_fields() -> None:
    """The JSON schema sent to the server lists the required top-level keys."""
    schema = schema_for(Stage.DETECTION)

    assert schema["title"] == "DetectionOutput"
    assert set(schema["required"]) == {"objects", "scene"}


def test_schema_for_vocabulary_constrains_difficulty() -> None:
    schema = schema_for(Stage.VOCABULARY)
    item = schema["$defs"]["VocabularyItemOutput"]

    assert item["properties"]["difficulty"]["enum"] == ["beginner", "intermediate", "advanced"]
    assert "phonetic" not in item["required"]
