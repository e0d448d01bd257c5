"""SRT subtitle parsing and serialization."""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, List, Optional

from ..logging import get_logger

logger = get_logger(__name__)

_TIMESTAMP = r"(\d{1,2}):(\d{2}):(\d{2})[,.](\d{3})"
TIMESTAMP_RE = re.compile(rf"^{_TIMESTAMP}$")
TIMESTAMP_LINE_RE = re.compile(rf"^{_TIMESTAMP}\s*-->\s*{_TIMESTAMP}$")
NUMBER_RE = re.compile(r"^\d+$")


class SubtitleFormatError(Exception):
    """Raised when subtitle content cannot be parsed."""


@dataclass(slots=True)
class SubtitleBlock:
    number: int
    start_ms: int
    end_ms: int
    text: str

    @property
    def timestamp_line(self) -> str:
        return f"{format_timestamp(self.start_ms)} --> {format_timestamp(self.end_ms)}"

    def render(self) -> str:
        return f"{self.number}\n{self.timestamp_line}\n{self.text}"

    def with_text(self, text: str) -> "SubtitleBlock":
        return replace(self, text=text)


def format_timestamp(milliseconds: int) -> str:
    """Format milliseconds as ``HH:MM:SS,mmm``."""
    ms = max(int(milliseconds), 0)
    hours, rest = divmod(ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


def _to_ms(hours: str, minutes: str, seconds: str, millis: str) -> int:
    return ((int(hours) * 60 + int(minutes)) * 60 + int(seconds)) * 1000 + int(millis)


def parse_timestamp(text: str) -> int:
    match = TIMESTAMP_RE.match(text.strip())
    if not match:
        raise SubtitleFormatError(f"Invalid SRT timestamp: {text!r}")
    return _to_ms(*match.groups())


def parse_srt(content: str) -> List[SubtitleBlock]:
    """Parse SRT text into blocks.

    A digits-only line starts a new block when the current block has no timing
    line yet or when a timing line follows it; otherwise it is subtitle text.
    Blocks missing a timing line or text are dropped.
    """

    blocks: List[SubtitleBlock] = []
    number: Optional[int] = None
    times: Optional[tuple[int, int]] = None
    text_lines: List[str] = []

    def close() -> None:
        nonlocal number, times, text_lines
        if number is not None:
            if times is None:
                logger.debug("Dropping subtitle block %d without timing line", number)
            elif not text_lines:
                logger.debug("Dropping empty subtitle block %d", number)
            else:
                blocks.append(SubtitleBlock(number, times[0], times[1], "\n".join(text_lines)))
        number, times, text_lines = None, None, []

    lines = [raw.strip() for raw in content.lstrip("\ufeff").splitlines()]
    for index, line in enumerate(lines):
        if not line:
            if text_lines:
                close()
            continue
        next_line = lines[index + 1] if index + 1 < len(lines) else ""
        starts_block = times is None or TIMESTAMP_LINE_RE.match(next_line) is not None
        if NUMBER_RE.match(line) and starts_block:
            if times is not None:
                close()
            number = int(line)
            text_lines = []
            continue
        timing = TIMESTAMP_LINE_RE.match(line)
        if timing and number is not None and times is None:
            groups = timing.groups()
            times = (_to_ms(*groups[:4]), _to_ms(*groups[4:]))
            continue
        if number is None:
            continue
        text_lines.append(line)

    close()
    return blocks


def read_srt(path: Path) -> List[SubtitleBlock]:
    try:
        content = Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise SubtitleFormatError(f"Failed to read subtitle file {path}: {exc}") from exc
    return parse_srt(content)


def serialize_srt(blocks: Iterable[SubtitleBlock]) -> str:
    rendered = [block.render() for block in blocks]
    if not rendered:
        return ""
    return "\n\n".join(rendered) + "\n"


def write_srt(blocks: Iterable[SubtitleBlock], path: Path) -> Path:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(serialize_srt(blocks), encoding="utf-8")
    logger.debug("Wrote subtitle file: %s", out_path)
    return out_path
