"""Abstract LLM and speech recognition client interfaces."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol

CancelCheck = Callable[[], bool]


@dataclass(slots=True)
class LLMRequest:
    user_prompt: str
    system_prompt: Optional[str] = None


@dataclass(slots=True)
class LLMResult:
    content: str
    request_id: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None


@dataclass(slots=True)
class LLMGenerationOptions:
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    source_lang: str | None = None
    target_lang: str | None = None


class LLMClient(Protocol):
    """Protocol for text generation backends."""

    def generate(self, request: LLMRequest, options: LLMGenerationOptions) -> LLMResult:
        ...

    def stream(self, request: LLMRequest, options: LLMGenerationOptions) -> Iterator[str]:
        ...


class Transcriber(Protocol):
    """Protocol for speech recognition backends.

    ``transcribe`` returns the raw transcription documents, one per input file.
    """

    def transcribe(self, file_url: str, should_cancel: Optional[CancelCheck] = None) -> List[Dict[str, Any]]:
        ...
