"""DashScope (Paraformer) file transcription client."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests
from dashscope.audio.asr import Transcription

from ..logging import get_logger
from .base import CancelCheck, Transcriber
from .dashscope_client import field_of, raise_for_response
from .errors import LLMCancelledError, LLMConfigError, LLMNetworkError, LLMResponseError

logger = get_logger(__name__)

FETCH_TIMEOUT = (30, 60)  # connect, read (s)
_FAILED_STATES = {"FAILED", "CANCELED", "UNKNOWN"}


@dataclass(slots=True)
class TranscriptionConfig:
    api_key: str
    model: str = "paraformer-v2"
    language_hints: List[str] = field(default_factory=lambda: ["zh", "ja", "en"])
    poll_interval: float = 2.0
    timeout: float = 1800.0


class DashScopeTranscriber(Transcriber):
    def __init__(
        self,
        config: TranscriptionConfig,
        transcription: Any = Transcription,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not config.api_key or not config.api_key.strip():
            raise LLMConfigError(
                "DashScope API key is not configured. Set speech_recognition.dashscope.api_key "
                "or the DASHSCOPE_API_KEY environment variable."
            )
        self.config = config
        self._transcription = transcription
        self._session = session or requests.Session()
        self._sleep = sleep
        self._clock = clock

    def submit(self, file_url: str) -> str:
        try:
            response = self._transcription.async_call(
                model=self.config.model,
                file_urls=[file_url],
                language_hints=list(self.config.language_hints),
                api_key=self.config.api_key,
            )
        except requests.RequestException as exc:
            raise LLMNetworkError(f"Failed to submit transcription task: {exc}") from exc
        raise_for_response(response, backend="DashScope ASR")

        task_id = field_of(field_of(response, "output"), "task_id")
        if not task_id:
            raise LLMResponseError(f"DashScope ASR returned no task id: {response}")
        logger.info("Transcription task submitted: %s (request_id=%s)", task_id, field_of(response, "request_id"))
        return str(task_id)

    def wait(self, task_id: str, should_cancel: Optional[CancelCheck] = None) -> Any:
        """Poll the task until it finishes and return its output."""

        deadline = self._clock() + self.config.timeout
        while True:
            if should_cancel is not None and should_cancel():
                raise LLMCancelledError(f"Transcription task {task_id} cancelled")
            try:
                response = self._transcription.fetch(task=task_id, api_key=self.config.api_key)
            except requests.RequestException as exc:
                raise LLMNetworkError(f"Failed to poll transcription task {task_id}: {exc}") from exc
            raise_for_response(response, backend="DashScope ASR")

            output = field_of(response, "output")
            status = str(field_of(output, "task_status", "")).upper()
            logger.debug("Transcription task %s status: %s", task_id, status)
            if status == "SUCCEEDED":
                return output
            if status in _FAILED_STATES:
                raise LLMResponseError(
                    f"Transcription task {task_id} ended with status {status}: "
                    f"{field_of(output, 'code', '')} {field_of(output, 'message', '')}".rstrip()
                )
            if self._clock() >= deadline:
                raise LLMResponseError(f"Transcription task {task_id} timed out after {self.config.timeout:g}s")
            self._sleep(self.config.poll_interval)

    def fetch_document(self, url: str) -> Dict[str, Any]:
        try:
            resp = self._session.get(url, timeout=FETCH_TIMEOUT)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise LLMNetworkError(f"Failed to download transcription result: {exc}") from exc
        try:
            data = resp.json()
        except ValueError as exc:
            raise LLMResponseError(f"Invalid JSON in transcription result: {exc}") from exc
        if not isinstance(data, dict):
            raise LLMResponseError("Transcription result is not a JSON object")
        return data

    def transcribe(self, file_url: str, should_cancel: Optional[CancelCheck] = None) -> List[Dict[str, Any]]:
        task_id = self.submit(file_url)
        output = self.wait(task_id, should_cancel=should_cancel)

        documents: List[Dict[str, Any]] = []
        for result in field_of(output, "results", []):
            if str(field_of(result, "subtask_status", "")).upper() == "FAILED":
                logger.warning(
                    "Transcription subtask for %s failed: %s %s",
                    field_of(result, "file_url", "?"),
                    field_of(result, "code", ""),
                    field_of(result, "message", ""),
                )
                continue
            url = field_of(result, "transcription_url")
            if not url:
                continue
            documents.append(self.fetch_document(url))
        logger.info("Transcription task %s finished with %d document(s)", task_id, len(documents))
        return documents

    def close(self) -> None:
        self._session.close()
