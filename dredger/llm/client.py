"""HTTP client for the local completion endpoint."""

from __future__ import annotations

import json
import os
import threading
import time
from dataclasses import dataclass
from http.client import HTTPException
from typing import Callable, Dict, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..config import DEFAULT_BASE_URL, DEFAULT_MODEL
from ..errors import (
    EndpointRejected,
    EndpointUnavailable,
    InferenceError,
    MalformedResponse,
    Timeout,
)
from ..logging import get_logger
from ..models import STATUS_FAILED, STATUS_SUCCEEDED, Chunk, GenerationResult
from ..prompting.builder import PromptBuilder
from .retry import RetryPolicy, RetryTracker

_AUTO_BASE_URL = object()
_AUTO_MODEL = object()

logger = get_logger("llm.client")


@dataclass
class CompletionRequest:
    """A single text-completion call."""

    base_url: str
    model: str
    prompt: str
    timeout: float


Transport = Callable[[CompletionRequest], bytes]


class InferenceClient:
    """Sends chunk prompts to the completion endpoint and parses per-unit docs."""

    DEFAULT_MODEL = DEFAULT_MODEL
    DEFAULT_BASE_URL = DEFAULT_BASE_URL
    ENV_MODEL_KEYS = ("DREDGER_LLM_MODEL", "OLLAMA_MODEL")
    ENV_BASE_URL_KEYS = ("DREDGER_LLM_BASE_URL", "OLLAMA_BASE_URL")

    _TIMEOUT_STATUSES = {408, 504}
    _UNAVAILABLE_STATUSES = {429}

    def __init__(
        self,
        *,
        base_url: str | object = _AUTO_BASE_URL,
        model: str | object = _AUTO_MODEL,
        request_timeout: float = 60.0,
        retry_policy: RetryPolicy | None = None,
        prompt_builder: PromptBuilder | None = None,
        transport: Transport | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.base_url = self._resolve_base_url(base_url)
        self.model = self._resolve_model(model)
        self.request_timeout = request_timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self._transport = transport or self._http_transport
        self._sleep = sleep

    def generate(
        self,
        chunk: Chunk,
        prompt_template: PromptBuilder | str | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> GenerationResult:
        """Request documentation for every unit in the chunk.

        Per-chunk errors never escape: they are recorded on the result.
        """
        builder = self._builder_for(prompt_template)
        prompt = builder.render(chunk)
        tracker = RetryTracker(self.retry_policy)

        while True:
            if cancel_event is not None and cancel_event.is_set():
                tracker.cancel()
                return GenerationResult.cancelled(chunk, retry_count=tracker.retries)

            tracker.start_attempt()
            try:
                answer = self.complete(prompt)
                segments = builder.markers.extract(answer, chunk.unit_ids)
            except InferenceError as exc:
                delay = tracker.fail(exc)
                if delay is None:
                    logger.warning(
                        "Chunk %d failed permanently after %d retries: %s",
                        chunk.index,
                        tracker.retries,
                        exc,
                    )
                    return GenerationResult(
                        chunk_index=chunk.index,
                        unit_ids=chunk.unit_ids,
                        status=STATUS_FAILED,
                        retry_count=tracker.retries,
                        error_kind=exc.kind,
                        error_message=str(exc),
                    )
                logger.info(
                    "Chunk %d hit %s; retry %d/%d in %.2fs",
                    chunk.index,
                    exc.kind,
                    tracker.retries + 1,
                    self.retry_policy.max_retries,
                    delay,
                )
                if self._backoff(delay, cancel_event):
                    tracker.cancel()
                    return GenerationResult.cancelled(chunk, retry_count=tracker.retries)
                continue

            tracker.succeed()
            return GenerationResult(
                chunk_index=chunk.index,
                unit_ids=chunk.unit_ids,
                status=STATUS_SUCCEEDED,
                segments=segments,
                retry_count=tracker.retries,
            )

    def complete(self, prompt: str) -> str:
        """Send one prompt and return the generated text."""
        request = CompletionRequest(
            base_url=self.base_url,
            model=self.model,
            prompt=prompt,
            timeout=self.request_timeout,
        )
        logger.debug("POST %s (model=%s, %d chars)", self.base_url, self.model, len(prompt))
        raw = self._transport(request)
        return self._extract_text(raw)

    def _builder_for(self, prompt_template: PromptBuilder | str | None) -> PromptBuilder:
        if prompt_template is None:
            return self.prompt_builder
        if isinstance(prompt_template, PromptBuilder):
            return prompt_template
        return PromptBuilder(prompt_template)

    def _backoff(self, delay: float, cancel_event: threading.Event | None) -> bool:
        """Wait out a backoff delay; return True when the run was cancelled meanwhile."""
        if self._sleep is not None:
            self._sleep(delay)
            return cancel_event is not None and cancel_event.is_set()
        if cancel_event is None:
            time.sleep(delay)
            return False
        return cancel_event.wait(delay)

    @classmethod
    def _http_transport(cls, request: CompletionRequest) -> bytes:
        payload = {"model": request.model, "prompt": request.prompt, "stream": False}
        data = json.dumps(payload).encode("utf-8")
        http_request = Request(
            request.base_url,
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urlopen(http_request, timeout=request.timeout) as response:  # type: ignore[arg-type]
                return response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore") if exc.fp is not None else ""
            message = f"Endpoint returned HTTP {exc.code}: {detail.strip() or exc.reason}"
            if exc.code in cls._TIMEOUT_STATUSES:
                raise Timeout(message) from exc
            if exc.code >= 500 or exc.code in cls._UNAVAILABLE_STATUSES:
                raise EndpointUnavailable(message) from exc
            raise EndpointRejected(message) from exc
        except URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise Timeout(f"Request to {request.base_url} timed out") from exc
            raise EndpointUnavailable(f"Cannot reach {request.base_url}: {exc.reason}") from exc
        except TimeoutError as exc:
            raise Timeout(f"Request to {request.base_url} timed out") from exc
        except HTTPException as exc:
            raise EndpointUnavailable(f"Broken HTTP response from {request.base_url}: {exc!r}") from exc
        except OSError as exc:
            raise EndpointUnavailable(f"Connection to {request.base_url} failed: {exc}") from exc

    @staticmethod
    def _extract_text(raw: bytes) -> str:
        try:
            body = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedResponse("Endpoint returned non UTF-8 bytes") from exc

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            payload = None

        if payload is not None:
            text = _text_field(payload)
            if text is None:
                raise MalformedResponse("Endpoint response has no text field")
            return text

        # Streaming servers answer with one JSON object per line.
        pieces = []
        for line in body.splitlines():
            if not line.strip():
                continue
            try:
                fragment = json.loads(line)
            except json.JSONDecodeError:
                continue
            text = _text_field(fragment)
            if text is not None:
                pieces.append(text)
        if not pieces:
            raise MalformedResponse("Endpoint returned invalid JSON")
        return "".join(pieces)

    def _resolve_model(self, model: str | object) -> str:
        if model is not _AUTO_MODEL and model:
            return str(model)
        return self._first_env_value(self.ENV_MODEL_KEYS) or self.DEFAULT_MODEL

    def _resolve_base_url(self, base_url: str | object) -> str:
        if base_url is not _AUTO_BASE_URL and base_url:
            return str(base_url)
        return self._first_env_value(self.ENV_BASE_URL_KEYS) or self.DEFAULT_BASE_URL

    @staticmethod
    def _first_env_value(keys: Sequence[str]) -> str | None:
        for key in keys:
            value = os.getenv(key)
            if value:
                return value
        return None


def _text_field(payload: object) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    fields: Dict[str, object] = payload
    for key in ("text", "response"):
        value = fields.get(key)
        if isinstance(value, str):
            return value
    return None


__all__ = ["CompletionRequest", "InferenceClient", "Transport"]
