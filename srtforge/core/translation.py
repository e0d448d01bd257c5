"""Batched subtitle translation."""
from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from ..config.model import TranslationConfig
from ..llm.base import CancelCheck, LLMClient
from ..llm.errors import LLMCancelledError
from ..logging import get_logger
from .prompts import PromptBuilder
from .srt import SubtitleBlock, SubtitleFormatError, read_srt, write_srt

logger = get_logger(__name__)

TRANSLATED_LINE_RE = re.compile(r"^\[(\d+)\]\s*(.+)$")

ProgressCallback = Callable[[int, int], None]


def parse_translated_content(batch: Sequence[SubtitleBlock], content: str) -> List[SubtitleBlock]:
    """Map ``[n] text`` lines of a model reply back onto the batch.

    When some markers are missing, falls back to plain line order; blocks left
    without a line keep their original text.
    """

    translated: Dict[int, str] = {}
    for line in content.splitlines():
        match = TRANSLATED_LINE_RE.match(line.strip())
        if not match:
            continue
        index = int(match.group(1)) - 1
        if 0 <= index < len(batch):
            translated.setdefault(index, match.group(2).strip())

    if len(translated) == len(batch):
        return [block.with_text(translated[i]) for i, block in enumerate(batch)]

    logger.warning(
        "Translation reply matched %d of %d markers, falling back to line order",
        len(translated),
        len(batch),
    )
    lines = [TRANSLATED_LINE_RE.sub(r"\2", line.strip()) for line in content.splitlines() if line.strip()]
    return [
        block.with_text(lines[i].strip()) if i < len(lines) else block
        for i, block in enumerate(batch)
    ]


class SubtitleTranslator:
    def __init__(
        self,
        client: LLMClient,
        config: TranslationConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.config = config
        self.prompt_builder = PromptBuilder(config)
        self._sleep = sleep

    def translate_batch(
        self, batch: Sequence[SubtitleBlock], source_lang: str, target_lang: str
    ) -> List[SubtitleBlock]:
        prompt = self.prompt_builder.build(batch, source_lang, target_lang)
        result = self.client.generate(prompt.request, prompt.options)
        return parse_translated_content(batch, result.content)

    def translate_blocks(
        self,
        blocks: Sequence[SubtitleBlock],
        source_lang: str,
        target_lang: str,
        progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None,
    ) -> List[SubtitleBlock]:
        batch_size = max(1, self.config.batch_size)
        total = len(blocks)
        translated: List[SubtitleBlock] = []

        for start in range(0, total, batch_size):
            if should_cancel is not None and should_cancel():
                raise LLMCancelledError("Translation cancelled")
            end = min(start + batch_size, total)
            translated.extend(self.translate_batch(blocks[start:end], source_lang, target_lang))

            logger.info("Translation progress: %d/%d (%.1f%%)", end, total, end / total * 100)
            if progress is not None:
                progress(end, total)
            if end < total and self.config.api_delay > 0:
                self._sleep(self.config.api_delay / 1000.0)

        return translated

    def translate_file(
        self,
        input_file: Path,
        output_file: Path,
        source_lang: str,
        target_lang: str,
        progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None,
    ) -> str:
        blocks = read_srt(input_file)
        if not blocks:
            raise SubtitleFormatError(f"Subtitle file is empty or malformed: {input_file}")

        translated = self.translate_blocks(blocks, source_lang, target_lang, progress, should_cancel)
        write_srt(translated, output_file)
        return f"Translated {len(translated)} subtitle(s) from {source_lang} to {target_lang}"
