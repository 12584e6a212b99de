"""Tests for the analysis pipeline and its background runner."""

from __future__ import annotations

import threading
from typing import Any, List, Tuple

import pytest

from lingolens.config import TEXT_MODEL, VISION_MODEL
from lingolens.errors import (
    AnalysisCancelled,
    InputInvalid,
    InvalidResponseFormat,
    PartialAnalysisError,
    RequestFailed,
    ServerUnreachable,
)
from lingolens.inputs import DescriptionInput
from lingolens.models import AnalysisResult
from lingolens.pipeline import AnalysisRunner, AnalysisTask, PipelineState, PipelineStatus, StagePipeline

from conftest import VOCABULARY_RESPONSE

GENERATION_SCHEMAS = {"VocabularyOutput", "StoryOutput", "ConversationOutput"}


def test_image_analysis_runs_detection_before_generation(fake_client, image_input, languages) -> None:
    """Detection is the first call; the three generation stages follow it."""
    pipeline = StagePipeline(fake_client)

    result = pipeline.analyze_image(image_input, languages)

    schemas = fake_client.schemas_called()
    assert schemas[0] == "DetectionOutput"
    assert set(schemas[1:]) == GENERATION_SCHEMAS
    assert len(schemas) == 4

    detection_call = fake_client.calls[0]
    assert detection_call["model"] == VISION_MODEL
    assert detection_call["image_base64"] == image_input.base64
    assert detection_call["temperature"] == 0.1
    for call in fake_client.calls[1:]:
        assert call["model"] == TEXT_MODEL
        assert call["image_base64"] is None
        assert call["temperature"] == 0.7

    assert result.detection.scene.location == "indoor home"
    assert [entry.word for entry in result.vocabulary] == ["gato", "silla"]
    assert result.story.title == "El gato tranquilo"
    assert result.conversation.participants == ["Ana", "Luis"]
    assert pipeline.status == PipelineStatus.COMPLETE


def test_generation_prompts_use_top_five_objects(fake_client, image_input, languages) -> None:
    StagePipeline(fake_client).analyze_image(image_input, languages)

    for call in fake_client.calls[1:]:
        assert "cat, chair, window, book, lamp" in call["prompt"]
        assert "rug" not in call["prompt"]


def test_description_analysis_uses_text_model(fake_client, languages) -> None:
    result = StagePipeline(fake_client).analyze_description("  A cat sleeping on a chair  ", languages)

    detection_call = fake_client.calls[0]
    assert detection_call["model"] == TEXT_MODEL
    assert detection_call["image_base64"] is None
    assert '"A cat sleeping on a chair"' in detection_call["prompt"]
    assert not result.is_empty()


@pytest.mark.parametrize("text", ["", "too short", " " * 20, "x" * 501])
def test_invalid_description_makes_no_requests(fake_client, languages, text: str) -> None:
    """Descriptions outside 10..500 trimmed characters never reach the server."""
    pipeline = StagePipeline(fake_client)

    with pytest.raises(InputInvalid):
        pipeline.analyze_description(text, languages)

    assert fake_client.calls == []
    assert pipeline.status == PipelineStatus.FAILED


def test_missing_input_is_rejected(fake_client, languages) -> None:
    with pytest.raises(InputInvalid):
        StagePipeline(fake_client).run(None, languages)
    assert fake_client.calls == []


@pytest.mark.parametrize(
    "error",
    [ServerUnreachable("down"), RequestFailed(500, "Internal Server Error"), InvalidResponseFormat("bad")],
)
def test_detection_failure_uses_fallback(client_factory, image_input, languages, error: Exception) -> None:
    """A failed detection is absorbed and generation still runs on the neutral scene."""
    client = client_factory({"DetectionOutput": error})

    result = StagePipeline(client).analyze_image(image_input, languages)

    assert result.detection.objects == []
    assert result.detection.scene.setting == "unknown"
    assert result.detection.scene.mood == "neutral"
    assert set(client.schemas_called()[1:]) == GENERATION_SCHEMAS
    assert "none detected" in client.calls[1]["prompt"]


def test_detection_schema_mismatch_uses_fallback(client_factory, image_input, languages) -> None:
    client = client_factory({"DetectionOutput": {"objects": "nope"}})

    result = StagePipeline(client).analyze_image(image_input, languages)

    assert result.detection.objects == []


def test_story_failure_keeps_other_sections(client_factory, image_input, languages) -> None:
    """One failed generation stage gets its fallback; the run reports a partial result."""
    client = client_factory({"StoryOutput": ServerUnreachable("down")})
    pipeline = StagePipeline(client)

    with pytest.raises(PartialAnalysisError) as exc_info:
        pipeline.analyze_image(image_input, languages)

    result = exc_info.value.result
    assert list(exc_info.value.errors) == ["story"]
    assert isinstance(exc_info.value.errors["story"], ServerUnreachable)
    assert result.story.title == "Story generation failed"
    assert result.story.content == "Unable to generate story at this time."
    assert [entry.word for entry in result.vocabulary] == ["gato", "silla"]
    assert result.conversation.scenario == "Two friends talk about a cat"
    assert pipeline.status == PipelineStatus.FAILED


def test_all_generation_failures_use_every_fallback(client_factory, image_input, languages) -> None:
    failing = {name: RequestFailed(503, "Service Unavailable") for name in GENERATION_SCHEMAS}
    client = client_factory(failing)

    with pytest.raises(PartialAnalysisError) as exc_info:
        StagePipeline(client).analyze_image(image_input, languages)

    result = exc_info.value.result
    assert set(exc_info.value.errors) == {"vocabulary", "story", "conversation"}
    assert result.vocabulary == []
    assert result.conversation.participants == ["System", "User"]
    assert result.conversation.dialogue[0].speaker == "System"
    assert result.conversation.cultural_notes == "Please try again later."


def test_vocabulary_truncated_to_ten(client_factory, image_input, languages) -> None:
    item = VOCABULARY_RESPONSE["vocabulary"][0]
    client = client_factory({"VocabularyOutput": {"vocabulary": [dict(item, word=f"w{i}") for i in range(14)]}})

    result = StagePipeline(client).analyze_image(image_input, languages)

    assert [entry.word for entry in result.vocabulary] == [f"w{i}" for i in range(10)]


def test_status_callbacks_in_order(fake_client, image_input, languages) -> None:
    seen: List[Tuple[PipelineStatus, int]] = []
    pipeline = StagePipeline(fake_client, on_status=lambda status, message, percent: seen.append((status, percent)))

    pipeline.analyze_image(image_input, languages)

    assert seen == [
        (PipelineStatus.DETECTING, 10),
        (PipelineStatus.GENERATING, 40),
        (PipelineStatus.COMPLETE, 100),
    ]


def test_cancelled_task_stops_before_generation(fake_client, image_input, languages) -> None:
    task = AnalysisTask(run_id=1)

    class CancellingClient:
        def generate(self, *args: Any, **kwargs: Any) -> Any:
            task.cancel()
            return fake_client.generate(*args, **kwargs)

    with pytest.raises(AnalysisCancelled):
        StagePipeline(CancellingClient()).run(image_input, languages, task=task)

    assert fake_client.schemas_called() == ["DetectionOutput"]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def test_runner_delivers_result(fake_client, image_input, languages) -> None:
    runner = AnalysisRunner(StagePipeline(fake_client))
    results: List[AnalysisResult] = []
    errors: List[Exception] = []

    task = runner.start(image_input, languages, on_result=results.append, on_error=errors.append)

    assert task.wait(timeout=5)
    assert errors == []
    assert len(results) == 1
    assert results[0].story.title == "El gato tranquilo"


def test_runner_delivers_partial_error(client_factory, image_input, languages) -> None:
    client = client_factory({"ConversationOutput": InvalidResponseFormat("bad")})
    runner = AnalysisRunner(StagePipeline(client))
    errors: List[Exception] = []

    task = runner.start(image_input, languages, on_result=lambda r: None, on_error=errors.append)

    assert task.wait(timeout=5)
    assert isinstance(errors[0], PartialAnalysisError)
    assert errors[0].result.conversation.scenario == "Conversation generation failed"


def test_superseded_run_result_is_dropped(fake_client, image_input, languages) -> None:
    """Starting a new run cancels the old one; only the newest result is delivered."""
    release = threading.Event()

    class BlockingClient:
        def __init__(self) -> None:
            self.first = True

        def generate(self, *args: Any, **kwargs: Any) -> Any:
            if self.first:
                self.first = False
                release.wait(timeout=5)
            return fake_client.generate(*args, **kwargs)

    runner = AnalysisRunner(StagePipeline(BlockingClient()))
    delivered: List[str] = []

    first = runner.start(
        image_input, languages, on_result=lambda r: delivered.append("first"), on_error=lambda e: delivered.append("first-error")
    )
    second = runner.start(
        DescriptionInput("A cat sleeping on a chair"),
        languages,
        on_result=lambda r: delivered.append("second"),
        on_error=lambda e: delivered.append("second-error"),
    )
    assert first.cancelled
    release.set()

    assert first.wait(timeout=5)
    assert second.wait(timeout=5)
    assert delivered == ["second"]
    assert isinstance(first.error, AnalysisCancelled)


def test_runner_cancel_drops_result(fake_client, image_input, languages) -> None:
    release = threading.Event()

    class BlockingClient:
        def generate(self, *args: Any, **kwargs: Any) -> Any:
            release.wait(timeout=5)
            return fake_client.generate(*args, **kwargs)

    runner = AnalysisRunner(StagePipeline(BlockingClient()))
    delivered: List[Any] = []
    task = runner.start(image_input, languages, on_result=delivered.append, on_error=delivered.append)

    runner.cancel()
    release.set()

    assert task.wait(timeout=5)
    assert delivered == []
    assert runner.current is None


def test_runner_uses_dispatch(fake_client, image_input, languages) -> None:
    queued: List[Any] = []
    runner = AnalysisRunner(StagePipeline(fake_client), dispatch=queued.append)
    results: List[AnalysisResult] = []

    task = runner.start(image_input, languages, on_result=results.append, on_error=lambda e: None)
    assert task.wait(timeout=5)

    assert results == []
    assert len(queued) == 1
    queued[0]()
    assert len(results) == 1


def test_pipeline_state_reset_cancels_task(image_input) -> None:
    state = PipelineState()
    state.selection.select_image(image_input)
    state.task = AnalysisTask(run_id=3)
    state.result = AnalysisResult()

    assert state.is_analyzing
    task = state.task
    state.reset()

    assert task.cancelled
    assert state.task is None
    assert state.result is None
    assert state.selection.mode is None
    assert not state.is_analyzing
