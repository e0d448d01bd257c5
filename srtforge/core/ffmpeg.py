"""FFmpeg discovery and audio extraction."""
from __future__ import annotations

import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..logging import get_logger

logger = get_logger(__name__)

_UNIX_CANDIDATES = ["/usr/bin/ffmpeg", "/usr/local/bin/ffmpeg", "/opt/homebrew/bin/ffmpeg"]
_WINDOWS_CANDIDATES = [r"C:\ffmpeg\bin\ffmpeg.exe", r"C:\Program Files\ffmpeg\bin\ffmpeg.exe"]

_resolved_ffmpeg: Optional[str] = None


class FFmpegError(Exception):
    """Raised when FFmpeg fails or cannot be run."""


class FFmpegNotFoundError(FFmpegError):
    """Raised when no usable FFmpeg binary can be located."""


@dataclass(slots=True)
class FFmpegRun:
    stdout: str
    stderr: str
    exit_code: int


def _platform_candidates() -> List[str]:
    return list(_WINDOWS_CANDIDATES) if sys.platform.startswith("win") else list(_UNIX_CANDIDATES)


def _is_usable(candidate: str) -> bool:
    try:
        completed = subprocess.run(
            [candidate, "-version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return False
    return completed.returncode == 0


def find_ffmpeg(configured: Optional[str] = None) -> str:
    """Locate a working ffmpeg executable.

    Checked in order: the configured path, ``SRTFORGE_FFMPEG``, ``PATH`` and a
    few well-known install locations. The first hit is cached for the process.
    """

    global _resolved_ffmpeg
    if configured is None and _resolved_ffmpeg is not None:
        return _resolved_ffmpeg

    candidates: List[str] = []
    if configured:
        candidates.append(configured)
    env_path = os.environ.get("SRTFORGE_FFMPEG")
    if env_path:
        candidates.append(env_path)
    on_path = shutil.which("ffmpeg")
    if on_path:
        candidates.append(on_path)
    candidates.extend(_platform_candidates())

    for candidate in dict.fromkeys(candidates):
        if _is_usable(candidate):
            logger.debug("Using ffmpeg at %s", candidate)
            if configured is None:
                _resolved_ffmpeg = candidate
            return candidate
        if candidate == configured:
            logger.warning("Configured ffmpeg %s is not usable, searching elsewhere", configured)

    raise FFmpegNotFoundError(
        "FFmpeg not found. Install it, put it on PATH, or set ffmpeg.path / SRTFORGE_FFMPEG."
    )


def reset_cache() -> None:
    global _resolved_ffmpeg
    _resolved_ffmpeg = None


def build_audio_extract_command(ffmpeg_path: str, input_file: Path, output_file: Path) -> List[str]:
    """Mono 16 kHz AAC at 64 kbit/s, no video stream."""
    return [
        ffmpeg_path,
        "-i",
        str(Path(input_file).resolve()),
        "-vn",
        "-acodec",
        "aac",
        "-ar",
        "16000",
        "-ac",
        "1",
        "-b:a",
        "64k",
        "-y",
        str(Path(output_file).resolve()),
    ]


def extract_audio(
    input_file: Path,
    output_file: Path,
    ffmpeg_path: Optional[str] = None,
    timeout: float = 120,
) -> FFmpegRun:
    input_file = Path(input_file)
    if not input_file.is_file():
        raise FFmpegError(f"Input file does not exist: {input_file}")

    command = build_audio_extract_command(find_ffmpeg(ffmpeg_path), input_file, output_file)
    logger.debug("Running: %s", " ".join(command))
    try:
        completed = subprocess.run(
            command,
            cwd=str(input_file.resolve().parent),
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise FFmpegError(f"FFmpeg timed out after {timeout:g}s") from exc
    except OSError as exc:
        raise FFmpegError(f"Failed to start FFmpeg: {exc}") from exc

    if completed.returncode != 0:
        raise FFmpegError(f"FFmpeg exited with code {completed.returncode}: {completed.stderr.strip()}")

    logger.info("Audio extracted: %s", output_file)
    return FFmpegRun(stdout=completed.stdout, stderr=completed.stderr, exit_code=completed.returncode)
