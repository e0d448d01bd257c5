"""Result types for subtitle commands."""
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import List, Optional


class CommandAction(IntEnum):
    EXTRACT_AUDIO = 1
    GENERATE_SUBTITLE = 2
    TRANSLATE_SUBTITLE = 3

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def output_suffix(self) -> str:
        return _SUFFIXES[self]


_DESCRIPTIONS = {
    CommandAction.EXTRACT_AUDIO: "Audio extraction",
    CommandAction.GENERATE_SUBTITLE: "Subtitle generation",
    CommandAction.TRANSLATE_SUBTITLE: "Subtitle translation",
}

_SUFFIXES = {
    CommandAction.EXTRACT_AUDIO: "_extracted.aac",
    CommandAction.GENERATE_SUBTITLE: "_subtitle.srt",
    CommandAction.TRANSLATE_SUBTITLE: "_translated.srt",
}


@dataclass(slots=True)
class CommandResult:
    result_file: Path
    processing_time_ms: int
    action: CommandAction
    output: str = ""
    error: str = ""
    exit_code: int = 0

    @property
    def processing_time_seconds(self) -> float:
        return self.processing_time_ms / 1000.0

    @property
    def action_description(self) -> str:
        return CommandAction(self.action).description

    @property
    def formatted_time(self) -> str:
        if self.processing_time_ms < 1000:
            return f"{self.processing_time_ms} ms"
        return f"{self.processing_time_seconds:.2f} s"

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@dataclass(slots=True)
class ProcessResult:
    source: Path
    succeeded: bool
    error: Optional[str] = None
    result: Optional[CommandResult] = None


@dataclass(slots=True)
class RunResult:
    total: int
    processed: int
    failed: int
    details: List[ProcessResult]
