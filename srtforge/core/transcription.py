"""Conversion of speech recognition output into SRT blocks."""
from __future__ import annotations

from typing import Any, Iterable, List, Mapping

from ..logging import get_logger
from .srt import SubtitleBlock, serialize_srt

logger = get_logger(__name__)

DEFAULT_SENTENCE_DURATION_MS = 5000
NO_SPEECH_TEXT = "No speech recognized"


def _as_ms(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def transcripts_to_blocks(documents: Iterable[Mapping[str, Any]]) -> List[SubtitleBlock]:
    """Flatten transcription documents into numbered subtitle blocks.

    Each document carries ``transcripts[].sentences[]`` with ``text``,
    ``begin_time`` and ``end_time`` in milliseconds.
    """

    blocks: List[SubtitleBlock] = []
    for document in documents:
        for transcript in document.get("transcripts") or []:
            for sentence in transcript.get("sentences") or []:
                text = str(sentence.get("text") or "").strip()
                if not text:
                    continue
                begin = _as_ms(sentence.get("begin_time"), 0)
                end = _as_ms(sentence.get("end_time"), begin + DEFAULT_SENTENCE_DURATION_MS)
                blocks.append(SubtitleBlock(len(blocks) + 1, begin, end, text))
    logger.debug("Converted transcription into %d subtitle block(s)", len(blocks))
    return blocks


def transcripts_to_srt(documents: Iterable[Mapping[str, Any]]) -> str:
    blocks = transcripts_to_blocks(documents)
    if not blocks:
        logger.warning("Transcription contained no sentences")
        blocks = [SubtitleBlock(1, 0, DEFAULT_SENTENCE_DURATION_MS, NO_SPEECH_TEXT)]
    return serialize_srt(blocks)
