"""DashScope (Qwen) text generation client."""
from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Dict, Iterator, List, Optional

import requests
from dashscope import Generation

from ..core.prompts import is_translation_model
from ..core.retry import RetryPolicy
from ..logging import get_logger
from .base import LLMClient, LLMGenerationOptions, LLMRequest, LLMResult
from .errors import LLMConfigError, LLMNetworkError, LLMRateLimitError, LLMResponseError

logger = get_logger(__name__)

_NETWORK_ERRORS = (requests.RequestException, ConnectionError, TimeoutError)


@dataclass(slots=True)
class DashScopeConfig:
    api_key: str
    model: str
    max_retries: int = 3


def field_of(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an SDK object that may be a dict or attribute bag."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def raise_for_response(response: Any, backend: str = "DashScope") -> None:
    """Map a non-OK DashScope response to the matching LLMError."""

    if response is None:
        raise LLMResponseError(f"{backend} returned no response")
    status = field_of(response, "status_code", HTTPStatus.OK)
    if status == HTTPStatus.OK:
        return
    code = str(field_of(response, "code", ""))
    message = field_of(response, "message", "")
    request_id = field_of(response, "request_id", "")
    detail = f"{backend} error {status} {code}: {message} (request_id={request_id})"
    if status == HTTPStatus.TOO_MANY_REQUESTS or code.startswith("Throttling"):
        raise LLMRateLimitError(detail)
    if status == HTTPStatus.UNAUTHORIZED or code == "InvalidApiKey":
        raise LLMConfigError(detail)
    if isinstance(status, int) and status >= 500:
        raise LLMNetworkError(detail)
    raise LLMResponseError(detail)


def _message_content(response: Any) -> str:
    choices = field_of(field_of(response, "output"), "choices", [])
    if not choices:
        return ""
    message = field_of(choices[0], "message")
    content = field_of(message, "content", "")
    if isinstance(content, list):
        # multimodal models return [{"text": ...}, ...]
        content = "".join(str(field_of(part, "text", "")) for part in content)
    return str(content)


class DashScopeLLMClient(LLMClient):
    def __init__(
        self,
        config: DashScopeConfig,
        generation: Any = Generation,
        retry: Optional[RetryPolicy] = None,
    ) -> None:
        if not config.api_key or not config.api_key.strip():
            raise LLMConfigError(
                "DashScope API key is not configured. Set translation.dashscope.api_key "
                "or the DASHSCOPE_API_KEY environment variable."
            )
        self.config = config
        self._generation = generation
        self._retry = retry or RetryPolicy(max_attempts=config.max_retries, base_delay=2.0)

    def _build_payload(self, request: LLMRequest, options: LLMGenerationOptions) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.user_prompt})

        payload: Dict[str, Any] = {
            "api_key": self.config.api_key,
            "model": self.config.model,
            "messages": messages,
            "result_format": "message",
        }
        opts = {
            "temperature": options.temperature,
            "top_p": options.top_p,
            "max_tokens": options.max_tokens,
        }
        opts = {k: v for k, v in opts.items() if v is not None}
        if opts:
            payload.update(opts)
            logger.debug("Using DashScope generation options: %s", opts)
        if options.source_lang or options.target_lang:
            payload["translation_options"] = {
                "source_lang": options.source_lang or "auto",
                "target_lang": options.target_lang,
            }
        return payload

    def _call(self, payload: Dict[str, Any]) -> Any:
        try:
            return self._generation.call(**payload)
        except _NETWORK_ERRORS as exc:
            raise LLMNetworkError(f"Failed to call DashScope: {exc}") from exc

    def generate(self, request: LLMRequest, options: LLMGenerationOptions) -> LLMResult:
        payload = self._build_payload(request, options)

        def attempt() -> Any:
            response = self._call(payload)
            raise_for_response(response)
            return response

        logger.debug("Calling DashScope model %s", self.config.model)
        response = self._retry.call(
            attempt,
            retry_on=(LLMRateLimitError, LLMNetworkError),
            operation_name=f"DashScope {self.config.model}",
        )

        content = _message_content(response)
        if not content:
            logger.error("Unexpected DashScope response: %s", response)
            raise LLMResponseError("Missing 'output.choices[0].message.content' in DashScope response")

        usage = field_of(response, "usage")
        logger.debug("Received %d characters from DashScope", len(content))
        return LLMResult(
            content=content,
            request_id=field_of(response, "request_id"),
            usage=dict(usage) if isinstance(usage, dict) else None,
        )

    def stream(self, request: LLMRequest, options: LLMGenerationOptions) -> Iterator[str]:
        """Yield text deltas as they arrive.

        Qwen-MT models only stream cumulative chunks (the whole text so far);
        every other model is asked for incremental chunks.
        """

        cumulative = is_translation_model(self.config.model)
        payload = self._build_payload(request, options)
        payload["stream"] = True
        if not cumulative:
            payload["incremental_output"] = True

        def open_stream() -> Iterator[Any]:
            chunks = iter(self._call(payload))
            try:
                first = next(chunks)
            except StopIteration:
                return iter(())
            except _NETWORK_ERRORS as exc:
                raise LLMNetworkError(f"DashScope stream failed: {exc}") from exc
            raise_for_response(first)
            return _prepend(first, chunks)

        chunks = self._retry.call(
            open_stream,
            retry_on=(LLMRateLimitError, LLMNetworkError),
            operation_name=f"DashScope stream {self.config.model}",
        )

        seen = ""
        try:
            for chunk in chunks:
                raise_for_response(chunk)
                text = _message_content(chunk)
                if not text:
                    continue
                if not cumulative:
                    delta = text
                elif text.startswith(seen):
                    delta = text[len(seen):]
                    seen = text
                else:
                    logger.debug("Cumulative stream restarted its text, emitting the full chunk")
                    delta = text
                    seen = text
                if delta:
                    yield delta
        except _NETWORK_ERRORS as exc:
            raise LLMNetworkError(f"DashScope stream interrupted: {exc}") from exc


def _prepend(first: Any, rest: Iterator[Any]) -> Iterator[Any]:
    yield first
    yield from rest
