"""
Analysis pipeline for LingoLens.

Stages, in order:
- Detection: one call that lists objects and describes the scene. Images go
  to the vision model; text descriptions go to the text model with a prompt
  that infers plausible contents. Failure is absorbed with a neutral fallback.
- Generation: vocabulary, story and conversation, dispatched together on
  their own threads and joined before the run ends. A failing stage gets its
  fallback, and the run then raises PartialAnalysisError carrying the merged
  result.

AnalysisRunner moves a run onto a background thread. Starting a new run
supersedes the previous one: it stops at the next stage boundary and its
result is never delivered.
"""

import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .config import (
    DETECTION_TEMPERATURE,
    GENERATION_TEMPERATURE,
    MAX_PROMPT_OBJECTS,
    MAX_VOCABULARY_ENTRIES,
    TEXT_MODEL,
    VISION_MODEL,
)
from .errors import AnalysisCancelled, InputInvalid, PartialAnalysisError
from .inputs import AnalysisInput, DescriptionInput, ImageInput, InputSelection, validate_description
from .logger import logger, Timer
from .models import (
    AnalysisResult, Conversation, DetectionResult, DialogueLine, LanguagePair,
    Scene, Story, VocabularyEntry,
)
from .prompts import (
    DescriptionParams, PromptPair, SceneContext, conversation_prompt,
    description_detection_prompt, image_detection_prompt, story_prompt, vocabulary_prompt,
)
from .schemas import Stage, schema_for, validate_stage_output


class PipelineStatus(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    GENERATING = "generating"
    COMPLETE = "complete"
    FAILED = "failed"


StatusCallback = Callable[[PipelineStatus, str, int], None]


# ---------------------------------------------------------------------------
# Fallbacks
# ---------------------------------------------------------------------------

def _detection_fallback() -> DetectionResult:
    return DetectionResult(
        objects=[],
        scene=Scene(setting="unknown", location="unknown", activity="unknown", mood="neutral"),
    )


def _vocabulary_fallback() -> List[VocabularyEntry]:
    return []


def _story_fallback() -> Story:
    return Story(
        title="Story generation failed",
        content="Unable to generate story at this time.",
        difficulty="beginner",
        word_count=0,
        key_vocabulary=[],
        moral="",
        translation="",
    )


def _conversation_fallback() -> Conversation:
    message = "Unable to generate conversations at this time."
    return Conversation(
        scenario="Conversation generation failed",
        participants=["System", "User"],
        difficulty="beginner",
        dialogue=[DialogueLine(speaker="System", text=message, translation=message)],
        cultural_notes="Please try again later.",
    )


_FALLBACKS: Dict[Stage, Callable[[], Any]] = {
    Stage.VOCABULARY: _vocabulary_fallback,
    Stage.STORY: _story_fallback,
    Stage.CONVERSATION: _conversation_fallback,
}


# ---------------------------------------------------------------------------
# Background task handle
# ---------------------------------------------------------------------------

class AnalysisTask:
    """Handle for one pipeline run started by AnalysisRunner."""

    def __init__(self, run_id: int) -> None:
        self.run_id = run_id
        self.status = PipelineStatus.IDLE
        self.result: Optional[AnalysisResult] = None
        self.error: Optional[Exception] = None
        self._cancel_event = threading.Event()
        self._done_event = threading.Event()

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self._done_event.is_set()

    def finish(self) -> None:
        self._done_event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the run finished and its outcome was dispatched (or dropped)."""
        return self._done_event.wait(timeout)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class StagePipeline:
    """
    Runs detection then the three generation stages against a model client.

    `client` needs a `generate(prompt, system_prompt, temperature, model,
    schema=None, image_base64=None)` method, such as OllamaClient.
    """

    def __init__(
        self,
        client: Any,
        vision_model: str = VISION_MODEL,
        text_model: str = TEXT_MODEL,
        on_status: Optional[StatusCallback] = None,
        max_prompt_objects: int = MAX_PROMPT_OBJECTS,
    ) -> None:
        self.client = client
        self.vision_model = vision_model
        self.text_model = text_model
        self.on_status = on_status
        self.max_prompt_objects = max_prompt_objects
        self.status = PipelineStatus.IDLE

    def _set_status(
        self,
        status: PipelineStatus,
        message: str,
        percent: int,
        task: Optional[AnalysisTask] = None,
    ) -> None:
        if task is not None:
            task.status = status
            if task.cancelled:
                return
        if self.status != status:
            logger.ui_transition(self.status.value, status.value)
        self.status = status
        if self.on_status:
            self.on_status(status, message, percent)

    @staticmethod
    def _check_cancelled(task: Optional[AnalysisTask]) -> None:
        if task is not None and task.cancelled:
            raise AnalysisCancelled(f"Analysis run #{task.run_id} was superseded")

    # Entry points ---------------------------------------------------------

    def analyze_image(
        self, image: ImageInput, languages: LanguagePair, task: Optional[AnalysisTask] = None
    ) -> AnalysisResult:
        return self.run(image, languages, task=task)

    def analyze_description(
        self, description: str, languages: LanguagePair, task: Optional[AnalysisTask] = None
    ) -> AnalysisResult:
        """Validate the text first; invalid descriptions never reach the server."""
        try:
            checked = validate_description(description)
        except InputInvalid:
            self._set_status(PipelineStatus.FAILED, "Invalid description", 0, task)
            raise
        return self.run(checked, languages, task=task)

    def run(
        self,
        analysis_input: Optional[AnalysisInput],
        languages: LanguagePair,
        task: Optional[AnalysisTask] = None,
    ) -> AnalysisResult:
        """
        Run every stage for one input.

        Returns the full result, or raises PartialAnalysisError (with the
        merged result attached) when a generation stage fell back.
        """
        if analysis_input is None:
            self._set_status(PipelineStatus.FAILED, "Nothing to analyze", 0, task)
            raise InputInvalid("Select an image or enter a scene description first")

        logger.separator(f"Analysis → {languages.target} (from {languages.source})")
        result = AnalysisResult()

        try:
            self._check_cancelled(task)
            self._set_status(PipelineStatus.DETECTING, "Identifying objects and scene...", 10, task)
            result.detection = self.detect(analysis_input)

            self._check_cancelled(task)
            self._set_status(
                PipelineStatus.GENERATING, "Generating vocabulary, story and conversation...", 40, task
            )
            errors = self.generate(result, languages)
            self._check_cancelled(task)
        except AnalysisCancelled:
            logger.task("Analysis cancelled at a stage boundary")
            self._set_status(PipelineStatus.FAILED, "Analysis cancelled", 0, task)
            raise

        if errors:
            self._set_status(PipelineStatus.FAILED, "Analysis finished with errors", 100, task)
            raise PartialAnalysisError(result, errors)

        self._set_status(PipelineStatus.COMPLETE, "Analysis complete!", 100, task)
        logger.success("Analysis complete")
        return result

    # Detection ------------------------------------------------------------

    def detect(self, analysis_input: AnalysisInput) -> DetectionResult:
        """Detection stage; never raises, substitutes the fallback instead."""
        if isinstance(analysis_input, ImageInput):
            prompt = image_detection_prompt()
            model = self.vision_model
            image_base64: Optional[str] = analysis_input.base64
        elif isinstance(analysis_input, DescriptionInput):
            prompt = description_detection_prompt(DescriptionParams(analysis_input.text))
            model = self.text_model
            image_base64 = None
        else:
            raise InputInvalid(f"Unsupported input type: {type(analysis_input).__name__}")

        logger.stage(f"Detection ({'image' if image_base64 else 'description'}, model: {model})")
        try:
            with Timer() as timer:
                data = self.client.generate(
                    prompt.user,
                    prompt.system,
                    DETECTION_TEMPERATURE,
                    model,
                    schema=schema_for(Stage.DETECTION),
                    image_base64=image_base64,
                )
                validated = validate_stage_output(Stage.DETECTION, data)
        except Exception as e:
            logger.stage_fallback(Stage.DETECTION.value, str(e))
            return _detection_fallback()

        detection = DetectionResult.from_dict(validated.model_dump())
        logger.stage_complete(
            f"{Stage.DETECTION.value}: {len(detection.objects)} objects, {detection.scene.location}",
            duration_ms=timer.duration_ms,
        )
        return detection

    # Generation -----------------------------------------------------------

    def scene_context(self, detection: DetectionResult, languages: LanguagePair) -> SceneContext:
        return SceneContext.from_detection(detection, languages, limit=self.max_prompt_objects)

    def generate(self, result: AnalysisResult, languages: LanguagePair) -> Dict[str, Exception]:
        """
        Run the three generation stages concurrently and merge them into `result`.

        Each worker writes only its own slot; the slots are merged after all
        three threads have been joined. Returns the errors of failed stages.
        """
        context = self.scene_context(result.detection or _detection_fallback(), languages)
        workers: Dict[Stage, Callable[[SceneContext], Any]] = {
            Stage.VOCABULARY: self._generate_vocabulary,
            Stage.STORY: self._generate_story,
            Stage.CONVERSATION: self._generate_conversation,
        }
        outputs: Dict[Stage, Any] = {}
        errors: Dict[str, Exception] = {}

        def _run_stage(stage: Stage, worker: Callable[[SceneContext], Any]) -> None:
            try:
                with Timer() as timer:
                    outputs[stage] = worker(context)
                logger.stage_complete(stage.value, duration_ms=timer.duration_ms)
            except Exception as e:
                logger.stage_fallback(stage.value, str(e))
                outputs[stage] = _FALLBACKS[stage]()
                errors[stage.value] = e

        threads = [
            threading.Thread(target=_run_stage, args=(stage, worker), daemon=True, name=f"stage-{stage.value}")
            for stage, worker in workers.items()
        ]
        for thread in threads:
            thread.start()
        logger.task(f"Dispatched {len(threads)} generation stages")
        for thread in threads:
            thread.join()

        result.vocabulary = outputs[Stage.VOCABULARY]
        result.story = outputs[Stage.STORY]
        result.conversation = outputs[Stage.CONVERSATION]
        return errors

    def _request(self, stage: Stage, prompt: PromptPair) -> Any:
        data = self.client.generate(
            prompt.user,
            prompt.system,
            GENERATION_TEMPERATURE,
            self.text_model,
            schema=schema_for(stage),
        )
        return validate_stage_output(stage, data).model_dump()

    def _generate_vocabulary(self, context: SceneContext) -> List[VocabularyEntry]:
        data = self._request(Stage.VOCABULARY, vocabulary_prompt(context))
        entries = [VocabularyEntry.from_dict(item) for item in data["vocabulary"]]
        if len(entries) > MAX_VOCABULARY_ENTRIES:
            logger.debug(f"Trimming vocabulary from {len(entries)} to {MAX_VOCABULARY_ENTRIES} entries")
        return entries[:MAX_VOCABULARY_ENTRIES]

    def _generate_story(self, context: SceneContext) -> Story:
        data = self._request(Stage.STORY, story_prompt(context))
        return Story.from_dict(data["story"])

    def _generate_conversation(self, context: SceneContext) -> Conversation:
        data = self._request(Stage.CONVERSATION, conversation_prompt(context))
        return Conversation.from_dict(data)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def _call_now(fn: Callable[[], None]) -> None:
    fn()


class AnalysisRunner:
    """
    Starts pipeline runs on daemon threads and delivers their outcome.

    `dispatch` decides which thread the callbacks run on; the Tkinter app
    passes `lambda fn: root.after(0, fn)`.
    """

    def __init__(
        self,
        pipeline: StagePipeline,
        dispatch: Callable[[Callable[[], None]], None] = _call_now,
    ) -> None:
        self.pipeline = pipeline
        self._dispatch = dispatch
        self._lock = threading.Lock()
        self._current: Optional[AnalysisTask] = None
        self._next_id = 1

    @property
    def current(self) -> Optional[AnalysisTask]:
        return self._current

    def is_current(self, task: AnalysisTask) -> bool:
        with self._lock:
            return self._current is task and not task.cancelled

    def cancel(self) -> None:
        with self._lock:
            if self._current is not None:
                self._current.cancel()
                self._current = None

    def start(
        self,
        analysis_input: AnalysisInput,
        languages: LanguagePair,
        on_result: Callable[[AnalysisResult], None],
        on_error: Callable[[Exception], None],
    ) -> AnalysisTask:
        with self._lock:
            if self._current is not None and not self._current.done:
                logger.task(f"Superseding analysis run #{self._current.run_id}")
                self._current.cancel()
            task = AnalysisTask(self._next_id)
            self._next_id += 1
            self._current = task

        thread = threading.Thread(
            target=self._execute,
            args=(task, analysis_input, languages, on_result, on_error),
            daemon=True,
            name=f"analysis-{task.run_id}",
        )
        logger.task_start(f"analysis run #{task.run_id}")
        thread.start()
        return task

    def _execute(
        self,
        task: AnalysisTask,
        analysis_input: AnalysisInput,
        languages: LanguagePair,
        on_result: Callable[[AnalysisResult], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        try:
            try:
                with Timer() as timer:
                    task.result = self.pipeline.run(analysis_input, languages, task=task)
            except Exception as e:
                task.error = e

            if not self.is_current(task):
                logger.task(f"Discarding outcome of superseded run #{task.run_id}")
                return

            if task.error is None:
                logger.task_complete(f"analysis run #{task.run_id}", duration_ms=timer.duration_ms)
                result = task.result
                self._dispatch(lambda: on_result(result))
            else:
                error = task.error
                logger.task_error(f"analysis run #{task.run_id}", str(error))
                self._dispatch(lambda: on_error(error))
        finally:
            task.finish()


class PipelineState:
    """UI-facing slice: the selected input, the last result and the running task."""

    def __init__(self) -> None:
        self.selection = InputSelection()
        self.result: Optional[AnalysisResult] = None
        self.task: Optional[AnalysisTask] = None

    @property
    def is_analyzing(self) -> bool:
        return self.task is not None and not self.task.done

    def reset(self) -> None:
        """Back to the upload screen: forget input, result and any running task."""
        if self.task is not None:
            self.task.cancel()
        self.selection.clear()
        self.result = None
        self.task = None
