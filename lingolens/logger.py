"""
Color-coded console logging for LingoLens.

Every line carries a wall-clock time, the seconds since startup and a short
category tag, so the interleaved output of the UI thread, the pipeline
thread and the three generation threads stays readable:

    14:02:11.481 (+   3.2s) [ STG] Detection (image, model: llama3.2-vision:latest)
    14:02:19.006 (+  10.7s) [ API] ← /api/generate (7521ms)

Usage:
    from lingolens.logger import logger, Timer

    with Timer() as timer:
        ...
    logger.stage_complete("story", duration_ms=timer.duration_ms)

Set LINGOLENS_QUIET=1 to silence everything except errors.
"""

import os
import sys
import threading
import time
import traceback
from datetime import datetime
from typing import Optional, TextIO

# Windows consoles default to a legacy code page; the markers below need UTF-8
for _stream in (sys.stdout, sys.stderr):
    if hasattr(_stream, "reconfigure"):
        _stream.reconfigure(encoding="utf-8")


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"


class DebugLogger:
    """
    Categorized console logger.

    ENV   configuration and settings file
    API   Ollama requests
    STG   pipeline stages and fallbacks
    UI    Tk events and card changes
    TASK  background runs
    GAME  practice game
    IO    dictionaries, export and import
    """

    def __init__(self, enabled: bool = True, stream: Optional[TextIO] = None) -> None:
        self.enabled = enabled
        self._stream = stream
        self._started = time.monotonic()
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    def _write(self, tag: str, color: str, message: str, force: bool = False, exc_info: bool = False) -> None:
        if not (self.enabled or force):
            return
        now = datetime.now()
        elapsed = time.monotonic() - self._started
        stamp = f"{now:%H:%M:%S}.{now.microsecond // 1000:03d} (+{elapsed:>6.1f}s)"
        head = f"{Colors.DIM}{stamp}{Colors.RESET} {color}{Colors.BOLD}[{tag:>4}]{Colors.RESET}"
        indent = " " * (len(stamp) + 8)

        first, *rest = message.split("\n")
        lines = [f"{head} {first}"] + [f"{indent}{line}" for line in rest]
        if exc_info:
            trace = [line for line in traceback.format_exc().splitlines() if line.strip()]
            lines += [f"{indent}{Colors.RED}{line}{Colors.RESET}" for line in trace]

        # Generation threads log concurrently; keep each entry contiguous
        with self._lock:
            print("\n".join(lines), file=self.stream, flush=True)

    # Configuration
    def env(self, message: str, **kwargs) -> None:
        self._write("ENV", Colors.MAGENTA, message, **kwargs)

    def env_success(self, message: str, **kwargs) -> None:
        self._write("ENV", Colors.GREEN, f"✓ {message}", **kwargs)

    # Ollama
    def api_call(self, endpoint: str, model: Optional[str] = None, **kwargs) -> None:
        suffix = f" (model: {model})" if model else ""
        self._write("API", Colors.CYAN, f"→ {endpoint}{suffix}", **kwargs)

    def api_response(self, endpoint: str, duration_ms: Optional[float] = None, **kwargs) -> None:
        self._write("API", Colors.CYAN, f"← {endpoint}{_ms(duration_ms)}", **kwargs)

    def api_error(self, message: str, **kwargs) -> None:
        self._write("API", Colors.RED, f"✗ {message}", force=True, **kwargs)

    # Pipeline
    def stage(self, message: str, **kwargs) -> None:
        self._write("STG", Colors.YELLOW, message, **kwargs)

    def stage_complete(self, stage: str, duration_ms: Optional[float] = None, **kwargs) -> None:
        self._write("STG", Colors.GREEN, f"✓ {stage}{_ms(duration_ms)}", **kwargs)

    def stage_fallback(self, stage: str, error: str, **kwargs) -> None:
        self._write("STG", Colors.YELLOW, f"⚠ {stage} fell back: {error}", force=True, **kwargs)

    # UI / background work
    def ui(self, message: str, **kwargs) -> None:
        self._write("UI", Colors.BLUE, message, **kwargs)

    def ui_transition(self, from_state: str, to_state: str, **kwargs) -> None:
        self._write("UI", Colors.BLUE, f"{from_state} → {to_state}", **kwargs)

    def task(self, message: str, **kwargs) -> None:
        self._write("TASK", Colors.WHITE, message, **kwargs)

    def task_start(self, name: str, **kwargs) -> None:
        self._write("TASK", Colors.WHITE, f"⚡ {name}", **kwargs)

    def task_complete(self, name: str, duration_ms: Optional[float] = None, **kwargs) -> None:
        self._write("TASK", Colors.GREEN, f"✓ {name}{_ms(duration_ms)}", **kwargs)

    def task_error(self, name: str, error: str, **kwargs) -> None:
        self._write("TASK", Colors.RED, f"✗ {name}: {error}", force=True, **kwargs)

    # Game / files
    def game(self, message: str, **kwargs) -> None:
        self._write("GAME", Colors.BLUE, message, **kwargs)

    def io(self, message: str, **kwargs) -> None:
        self._write("IO", Colors.MAGENTA, message, **kwargs)

    # General
    def success(self, message: str, **kwargs) -> None:
        self._write("OK", Colors.GREEN, f"✓ {message}", **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._write("WARN", Colors.YELLOW, f"⚠ {message}", **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._write("ERR", Colors.RED, f"✗ {message}", force=True, **kwargs)

    def debug(self, message: str, **kwargs) -> None:
        self._write("DBG", Colors.DIM, message, **kwargs)

    def separator(self, title: Optional[str] = None) -> None:
        if not self.enabled:
            return
        rule = f"{'─' * 16} {title} {'─' * 16}" if title else "─" * 48
        with self._lock:
            print(f"\n{Colors.DIM}{rule}{Colors.RESET}\n", file=self.stream, flush=True)

    def banner(self, text: str) -> None:
        if not self.enabled:
            return
        width = max(56, len(text) + 6)
        edge = "═" * width
        with self._lock:
            print(
                f"\n{Colors.CYAN}{edge}\n{Colors.BOLD}{text.center(width)}{Colors.RESET}\n"
                f"{Colors.CYAN}{edge}{Colors.RESET}\n",
                file=self.stream,
                flush=True,
            )


def _ms(duration_ms: Optional[float]) -> str:
    return f" ({duration_ms:.0f}ms)" if duration_ms else ""


logger = DebugLogger(enabled=os.getenv("LINGOLENS_QUIET", "").lower() not in ("1", "true", "yes"))


class Timer:
    """Measures the wall time of a `with` block in milliseconds."""

    def __init__(self) -> None:
        self.duration_ms: float = 0.0
        self._start = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc) -> None:
        self.duration_ms = (time.perf_counter() - self._start) * 1000
