"""
Error types raised by LingoLens services.

The client raises the transport-level errors; the pipeline decides which of
them are absorbed (with a fallback) and which are re-signaled to the caller.
"""

from typing import Any, Dict, Optional


class LingoLensError(Exception):
    """Base class for all application errors."""


class ServerUnreachable(LingoLensError):
    """The Ollama server could not be reached (connection error or timeout)."""


class RequestFailed(LingoLensError):
    """The Ollama server answered with a non-success HTTP status."""

    def __init__(self, status_code: int, reason: str, body: str = "") -> None:
        super().__init__(f"Ollama request failed: {status_code} {reason}".rstrip())
        self.status_code = status_code
        self.reason = reason
        self.body = body


class InvalidResponseFormat(LingoLensError):
    """The response body could not be parsed as the expected structure."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class ValidationFailed(LingoLensError):
    """Parsed data does not match the stage schema."""

    def __init__(self, stage: str, details: Optional[Any] = None) -> None:
        super().__init__(f"Response for '{stage}' does not match its schema")
        self.stage = stage
        self.details = details


class InputInvalid(LingoLensError):
    """The analysis input was rejected before any request was made."""


class AnalysisCancelled(LingoLensError):
    """A pipeline run was superseded or cancelled between stages."""


class PartialAnalysisError(LingoLensError):
    """
    One or more generation stages failed.

    ``result`` still holds every stage that succeeded plus the fallbacks of the
    ones that failed; ``errors`` maps stage name to the original exception.
    """

    def __init__(self, result: Any, errors: Dict[str, Exception]) -> None:
        stages = ", ".join(sorted(errors))
        super().__init__(f"Analysis finished with failed stages: {stages}")
        self.result = result
        self.errors = errors


class ExportError(LingoLensError):
    """An analysis document could not be written or read back."""
