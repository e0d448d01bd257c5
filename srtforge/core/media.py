"""Media file classification, language codes and output naming."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from ..config.model import AppConfig

SUBTITLE_EXTENSIONS = frozenset({".srt", ".vtt", ".ass", ".ssa"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv", ".webm", ".m4v"})
AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".aac", ".flac", ".ogg", ".m4a", ".wma"})

# code, English name, Chinese name
_LANGUAGES = [
    ("zh", "Chinese", "中文"),
    ("en", "English", "英文"),
    ("ja", "Japanese", "日文"),
    ("ko", "Korean", "韩文"),
    ("fr", "French", "法文"),
    ("de", "German", "德文"),
    ("es", "Spanish", "西班牙文"),
    ("ru", "Russian", "俄文"),
    ("pt", "Portuguese", "葡萄牙文"),
    ("it", "Italian", "意大利文"),
    ("nl", "Dutch", "荷兰文"),
    ("ar", "Arabic", "阿拉伯文"),
    ("th", "Thai", "泰文"),
    ("vi", "Vietnamese", "越南文"),
]

_NAME_TO_CODE = {
    **{english.lower(): code for code, english, _ in _LANGUAGES},
    **{chinese: code for code, _, chinese in _LANGUAGES},
}
_CODE_TO_NAME = {code: english for code, english, _ in _LANGUAGES}


class MediaKind(str, Enum):
    SUBTITLE = "subtitle"
    VIDEO = "video"
    AUDIO = "audio"
    UNKNOWN = "unknown"


def get_base_name(path: Optional[Path]) -> str:
    """File name without its last extension."""
    if path is None:
        return ""
    name = Path(path).name
    dot = name.rfind(".")
    return name[:dot] if 0 < dot < len(name) - 1 else name


def get_file_extension(path: Optional[Path]) -> str:
    """Lowercased extension including the dot, or an empty string."""
    if path is None:
        return ""
    name = Path(path).name
    dot = name.rfind(".")
    if 0 < dot < len(name) - 1:
        return name[dot:].lower()
    return ""


def is_subtitle_file(path: Optional[Path]) -> bool:
    return get_file_extension(path) in SUBTITLE_EXTENSIONS


def is_video_file(path: Optional[Path]) -> bool:
    return get_file_extension(path) in VIDEO_EXTENSIONS


def is_audio_file(path: Optional[Path]) -> bool:
    return get_file_extension(path) in AUDIO_EXTENSIONS


def classify(path: Optional[Path]) -> MediaKind:
    if is_subtitle_file(path):
        return MediaKind.SUBTITLE
    if is_video_file(path):
        return MediaKind.VIDEO
    if is_audio_file(path):
        return MediaKind.AUDIO
    return MediaKind.UNKNOWN


def get_language_code(language_name: Optional[str]) -> Optional[str]:
    if not language_name:
        return None
    return _NAME_TO_CODE.get(language_name.strip().lower())


def get_language_name(language_code: Optional[str]) -> Optional[str]:
    if not language_code:
        return None
    return _CODE_TO_NAME.get(language_code.strip().lower())


def generate_subtitle_file_name(path: Optional[Path]) -> str:
    if path is None:
        return "subtitle.srt"
    return f"{get_base_name(path)}.srt"


def generate_translated_file_name(path: Optional[Path], target_lang: Optional[str]) -> str:
    if path is None:
        return "translated_subtitle.srt"
    base = get_base_name(path)
    code = get_language_code(target_lang)
    if code is not None:
        return f"{base}.{code}.srt"
    return f"{base}_translated.srt"


def generate_default_translated_file_name(path: Optional[Path], config: AppConfig) -> str:
    return generate_translated_file_name(path, config.translation.target_lang)
