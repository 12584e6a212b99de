"""
Ollama HTTP client for LingoLens.

This module handles:
- Single structured generation requests (POST /api/generate)
- Connectivity checks against the model listing (GET /api/tags)
- Cleanup of free-text responses from models that wrap their output

A fresh httpx.Client is opened for each call; nothing is pooled between
requests. Retry policy belongs to the caller.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .config import ACCEPTED_MODELS, DEFAULT_OLLAMA_URL, NUM_PREDICT, REQUEST_TIMEOUT
from .errors import InvalidResponseFormat, RequestFailed, ServerUnreachable
from .logger import logger, Timer

GENERATE_ENDPOINT = "/api/generate"
TAGS_ENDPOINT = "/api/tags"

# Leading/trailing whitespace and backtick fences
_FENCE_RE = re.compile(r"^[`\s]+|[`\s]+$")


def normalize_response_text(text: str) -> str:
    """
    Strip the wrapping some models put around their answer.

    Handles, in order: surrounding whitespace and backtick fences
    (```json ... ```), then a literal leading "json" marker left behind
    by the fence.
    """
    cleaned = _FENCE_RE.sub("", text or "")
    if cleaned.startswith("json"):
        cleaned = cleaned[4:].strip()
    return cleaned


@dataclass
class ConnectionStatus:
    reachable: bool = False
    model_available: bool = False
    models: List[str] = field(default_factory=list)


class OllamaClient:
    """Thin synchronous client for a local Ollama server."""

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        timeout: Optional[float] = REQUEST_TIMEOUT,
        num_predict: int = NUM_PREDICT,
        accepted_models: Sequence[str] = ACCEPTED_MODELS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.num_predict = num_predict
        self.accepted_models = tuple(m.lower() for m in accepted_models)
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(
        self,
        prompt: str,
        system_prompt: str,
        temperature: float,
        model: str,
        schema: Optional[Dict[str, Any]] = None,
        image_base64: Optional[str] = None,
    ) -> Any:
        """
        Run one non-streaming generation request.

        With a schema, the response is constrained to it and returned as
        parsed JSON. Without one, the normalized text is returned.

        Raises:
            ServerUnreachable: connection failure or timeout.
            RequestFailed: non-2xx HTTP status.
            InvalidResponseFormat: body or JSON payload could not be parsed.
        """
        if not prompt or not prompt.strip():
            raise ValueError("prompt must be a non-empty string")
        if not system_prompt or not system_prompt.strip():
            raise ValueError("system_prompt must be a non-empty string")
        if not 0.0 <= temperature <= 1.0:
            raise ValueError(f"temperature must be within [0, 1], got {temperature}")

        payload: Dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "system": system_prompt,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": self.num_predict},
        }
        if image_base64:
            payload["images"] = [image_base64]
        if schema is not None:
            payload["format"] = schema

        logger.api_call(GENERATE_ENDPOINT, model=model)
        try:
            with Timer() as timer, self._client() as client:
                response = client.post(GENERATE_ENDPOINT, json=payload)
        except (httpx.TransportError, httpx.InvalidURL) as e:
            logger.api_error(f"Ollama unreachable at {self.base_url}: {e}")
            raise ServerUnreachable(f"Cannot connect to Ollama at {self.base_url}: {e}") from e
        logger.api_response(GENERATE_ENDPOINT, duration_ms=timer.duration_ms)

        if not response.is_success:
            logger.api_error(f"{GENERATE_ENDPOINT} returned {response.status_code} {response.reason_phrase}")
            raise RequestFailed(response.status_code, response.reason_phrase, response.text)

        try:
            body = response.json()
        except ValueError as e:
            raise InvalidResponseFormat("Ollama returned a non-JSON body", raw=response.text) from e
        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise InvalidResponseFormat("Ollama response has no 'response' text", raw=response.text)

        cleaned = normalize_response_text(text)
        if schema is None:
            return cleaned

        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.api_error(f"Model output is not valid JSON: {e}")
            raise InvalidResponseFormat(f"Model output is not valid JSON: {e}", raw=text) from e

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    def check_connection(self) -> ConnectionStatus:
        """
        Check that the server answers and that an accepted model is installed.

        Never raises; any failure is reported as unreachable.
        """
        logger.api_call(TAGS_ENDPOINT)
        try:
            with self._client() as client:
                response = client.get(TAGS_ENDPOINT)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.api_error(f"Connection check failed: {e}")
            return ConnectionStatus(reachable=False, model_available=False)

        models = data.get("models") if isinstance(data, dict) else None
        names = [
            str(m.get("name", "")) for m in (models or []) if isinstance(m, dict)
        ]
        available = any(
            accepted in name.lower() for name in names for accepted in self.accepted_models
        )
        if available:
            logger.success(f"Ollama reachable, accepted model found ({len(names)} models installed)")
        else:
            logger.warning(f"Ollama reachable but none of {', '.join(self.accepted_models)} is installed")
        return ConnectionStatus(reachable=True, model_available=available, models=names)
