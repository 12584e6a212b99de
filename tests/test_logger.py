from __future__ import annotations

import io
import time

from lingolens.logger import DebugLogger, Timer


def test_lines_carry_category_tag() -> None:
    stream = io.StringIO()
    log = DebugLogger(stream=stream)

    log.stage("Detection (image)")
    log.api_response("/api/generate", duration_ms=1234)

    output = stream.getvalue()
    assert "[ STG]" in output
    assert "Detection (image)" in output
    assert "← /api/generate (1234ms)" in output


def test_disabled_logger_still_reports_errors() -> None:
    stream = io.StringIO()
    log = DebugLogger(enabled=False, stream=stream)

    log.stage("hidden")
    log.stage_fallback("story", "timed out")
    log.error("boom")

    output = stream.getvalue()
    assert "hidden" not in output
    assert "story fell back: timed out" in output
    assert "boom" in output


def test_multiline_messages_are_indented() -> None:
    stream = io.StringIO()
    DebugLogger(stream=stream).warning("first\nsecond")

    first, second = stream.getvalue().rstrip("\n").split("\n")
    assert first.endswith("⚠ first")
    assert second.strip() == "second"
    assert second.startswith(" ")


def test_timer_measures_block() -> None:
    with Timer() as timer:
        time.sleep(0.01)
    assert timer.duration_ms >= 5
