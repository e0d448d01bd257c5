"""Prompt handling and building for subtitle translation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..config.model import TranslationConfig
from ..llm.base import LLMGenerationOptions, LLMRequest
from ..logging import get_logger
from .srt import SubtitleBlock

logger = get_logger(__name__)

SYSTEM_PROMPT_TEMPLATE = (
    "You are a professional subtitle translator.\n"
    "Translate each numbered line from {source_lang} into {target_lang}.\n"
    "Rules:\n"
    "- Keep the [n] marker at the start of every line exactly as given.\n"
    "- Output exactly one line per input line, in the same order.\n"
    "- Do not merge, split, explain or add anything else.\n"
)


@dataclass(slots=True)
class PromptBundle:
    request: LLMRequest
    options: LLMGenerationOptions


def is_translation_model(model: str) -> bool:
    """Qwen-MT models take languages through translation_options, not prompts."""
    return model.lower().startswith("qwen-mt")


def format_batch(batch: Sequence[SubtitleBlock]) -> str:
    return "\n".join(f"[{i}] {' '.join(block.text.split())}" for i, block in enumerate(batch, start=1))


class PromptBuilder:
    def __init__(self, config: TranslationConfig) -> None:
        self.config = config

    def build(self, batch: Sequence[SubtitleBlock], source_lang: str, target_lang: str) -> PromptBundle:
        content = format_batch(batch)
        options = LLMGenerationOptions(temperature=self.config.temperature, top_p=self.config.top_p)
        if is_translation_model(self.config.model):
            options.source_lang = source_lang
            options.target_lang = target_lang
            request = LLMRequest(user_prompt=content)
        else:
            system = SYSTEM_PROMPT_TEMPLATE.format(source_lang=source_lang, target_lang=target_lang)
            request = LLMRequest(user_prompt=content, system_prompt=system)
        logger.debug("Built translation prompt for %d block(s) (length=%d)", len(batch), len(content))
        return PromptBundle(request=request, options=options)
