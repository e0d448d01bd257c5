"""Configuration loading and merging utilities."""
from __future__ import annotations

import os
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

import yaml
from dotenv import load_dotenv

from .model import (
    DEFAULT_LANGUAGES,
    AppConfig,
    ApplicationConfig,
    FFmpegConfig,
    LanguageOption,
    SpeechConfig,
    StorageConfig,
    TranslationConfig,
)
from ..logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILENAMES = [
    Path("srtforge.yaml"),
    Path("config.yaml"),
    Path("~/.config/srtforge/config.yaml"),
]

_ENV_PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""


def lookup(data: Mapping[str, Any] | None, path: str, default: Any = None) -> Any:
    """Resolve a dotted key path such as ``"file_upload.endpoint"``.

    Missing segments, non-mapping intermediates and explicit nulls all resolve
    to ``default``.
    """

    current: Any = data
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return default
        current = current.get(key)
    return default if current is None else current


def _deep_merge(base: MutableMapping[str, Any], overlay: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for k, v in overlay.items():
        if isinstance(v, Mapping) and isinstance(base.get(k), Mapping):
            base[k] = _deep_merge(dict(base[k]), v)
        else:
            base[k] = v
    return base


def _expand_env(obj: Any, *, key_path: str = "") -> Any:
    if isinstance(obj, str):
        def repl(match: re.Match[str]) -> str:
            name = match.group(1)
            value = os.getenv(name)
            if value is None:
                raise ConfigError(f"Environment variable {name!r} referenced by {key_path or '<root>'} is missing")
            if value == "":
                raise ConfigError(f"Environment variable {name!r} referenced by {key_path or '<root>'} is empty")
            return value

        return _ENV_PLACEHOLDER_RE.sub(repl, obj)
    if isinstance(obj, list):
        return [_expand_env(v, key_path=key_path) for v in obj]
    if isinstance(obj, dict):
        return {k: _expand_env(v, key_path=f"{key_path}.{k}" if key_path else str(k)) for k, v in obj.items()}
    return obj


def _load_file(path: Path) -> dict:
    if not path.is_file():
        return {}
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read config from {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text) if text.strip() else {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config at {path} is not a YAML mapping")
    logger.debug("Loaded config file: %s", path)
    return data


def _env_override() -> dict:
    overrides: dict = {}

    def _put(path: tuple[str, ...], value: Any) -> None:
        current = overrides
        for key in path[:-1]:
            current = current.setdefault(key, {})
        current[path[-1]] = value

    mapping = {
        "OSS_ENDPOINT": ("file_upload", "endpoint"),
        "OSS_BUCKET": ("file_upload", "bucket_name"),
        "SRTFORGE_FFMPEG": ("ffmpeg", "path"),
    }
    for env_name, path in mapping.items():
        if os.environ.get(env_name):
            _put(path, os.environ[env_name])

    if "SRTFORGE_DEBUG" in os.environ:
        _put(("application", "debug_mode"), os.environ["SRTFORGE_DEBUG"].strip().lower() in _TRUTHY)
    return overrides


def _as_int(raw: dict, path: str, default: int) -> int:
    value = lookup(raw, path, default)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{path} must be an integer, got {value!r}") from exc


def _as_float(raw: dict, path: str, default: Optional[float]) -> Optional[float]:
    value = lookup(raw, path, default)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{path} must be a number, got {value!r}") from exc


def _as_bool(raw: dict, path: str, default: bool) -> bool:
    value = lookup(raw, path, default)
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _as_str(raw: dict, path: str, default: str) -> str:
    value = lookup(raw, path, default)
    return str(value)


def _languages(raw: dict) -> list[LanguageOption]:
    items = lookup(raw, "translation.supported_languages", None)
    if not items:
        return list(DEFAULT_LANGUAGES)
    if not isinstance(items, list):
        raise ConfigError("translation.supported_languages must be a list")
    languages = []
    for item in items:
        if not isinstance(item, Mapping) or not item.get("name"):
            raise ConfigError(f"translation.supported_languages entries need a name, got {item!r}")
        languages.append(LanguageOption(code=str(item.get("code", "")), name=str(item["name"])))
    return languages


def _dict_to_config(raw: dict) -> AppConfig:
    storage_defaults = StorageConfig()
    speech_defaults = SpeechConfig()
    translation_defaults = TranslationConfig()

    hints = lookup(raw, "speech_recognition.dashscope.language_hints", speech_defaults.language_hints)
    if isinstance(hints, str):
        hints = [h.strip() for h in hints.split(",") if h.strip()]

    ffmpeg_path = lookup(raw, "ffmpeg.path", None)

    return AppConfig(
        application=ApplicationConfig(
            debug_mode=_as_bool(raw, "application.debug_mode", False),
        ),
        storage=StorageConfig(
            access_key_id=_as_str(raw, "file_upload.access_key_id", ""),
            access_key_secret=_as_str(raw, "file_upload.access_key_secret", ""),
            endpoint=_as_str(raw, "file_upload.endpoint", storage_defaults.endpoint),
            bucket_name=_as_str(raw, "file_upload.bucket_name", ""),
            object_key_prefix=_as_str(raw, "file_upload.object_key_prefix", storage_defaults.object_key_prefix),
            use_https=_as_bool(raw, "file_upload.use_https", storage_defaults.use_https),
            connection_timeout=_as_int(raw, "file_upload.connection_timeout", storage_defaults.connection_timeout),
            socket_timeout=_as_int(raw, "file_upload.socket_timeout", storage_defaults.socket_timeout),
            max_connections=_as_int(raw, "file_upload.max_connections", storage_defaults.max_connections),
            multipart_threshold=_as_int(
                raw, "file_upload.multipart_threshold", storage_defaults.multipart_threshold
            ),
            part_size=_as_int(raw, "file_upload.part_size", storage_defaults.part_size),
            upload_threads=_as_int(raw, "file_upload.upload_threads", storage_defaults.upload_threads),
            url_mode=_as_str(raw, "file_upload.url_mode", storage_defaults.url_mode).lower(),
            url_expires=_as_int(raw, "file_upload.url_expires", storage_defaults.url_expires),
            max_retries=_as_int(raw, "file_upload.max_retries", storage_defaults.max_retries),
        ),
        speech=SpeechConfig(
            api_key=_as_str(raw, "speech_recognition.dashscope.api_key", ""),
            model=_as_str(raw, "speech_recognition.dashscope.model", speech_defaults.model),
            language_hints=[str(h) for h in hints],
            poll_interval=_as_float(raw, "speech_recognition.dashscope.poll_interval", speech_defaults.poll_interval),
            timeout=_as_float(raw, "speech_recognition.dashscope.timeout", speech_defaults.timeout),
        ),
        translation=TranslationConfig(
            api_key=_as_str(raw, "translation.dashscope.api_key", ""),
            model=_as_str(raw, "translation.dashscope.model", translation_defaults.model),
            batch_size=_as_int(raw, "translation.dashscope.batch_size", translation_defaults.batch_size),
            api_delay=_as_int(raw, "translation.dashscope.api_delay", translation_defaults.api_delay),
            source_lang=_as_str(raw, "translation.default_languages.source_lang", translation_defaults.source_lang),
            target_lang=_as_str(raw, "translation.default_languages.target_lang", translation_defaults.target_lang),
            supported_languages=_languages(raw),
            max_retries=_as_int(raw, "translation.dashscope.max_retries", translation_defaults.max_retries),
            temperature=_as_float(raw, "translation.dashscope.temperature", None),
            top_p=_as_float(raw, "translation.dashscope.top_p", None),
        ),
        ffmpeg=FFmpegConfig(
            path=str(ffmpeg_path) if ffmpeg_path else None,
            timeout=_as_int(raw, "ffmpeg.timeout", FFmpegConfig().timeout),
        ),
    )


def _apply_key_fallbacks(config: AppConfig) -> AppConfig:
    """Fill blank credentials from DASHSCOPE_API_KEY and OSS_ACCESS_KEY_*."""

    storage = config.storage
    key_id = os.environ.get("OSS_ACCESS_KEY_ID", "").strip()
    if key_id and not storage.access_key_id.strip():
        storage = replace(storage, access_key_id=key_id)
    key_secret = os.environ.get("OSS_ACCESS_KEY_SECRET", "").strip()
    if key_secret and not storage.access_key_secret.strip():
        storage = replace(storage, access_key_secret=key_secret)

    speech, translation = config.speech, config.translation
    shared_key = os.environ.get("DASHSCOPE_API_KEY", "").strip()
    if shared_key:
        if not speech.has_api_key:
            speech = replace(speech, api_key=shared_key)
        if not translation.has_api_key:
            translation = replace(translation, api_key=shared_key)
    return replace(config, storage=storage, speech=speech, translation=translation)


def _candidate_paths(config_path: Optional[Path]) -> list[Path]:
    if config_path is not None:
        return [Path(config_path).expanduser()]
    return [p.expanduser() for p in DEFAULT_CONFIG_FILENAMES]


def load_config(config_path: Optional[Path] = None, load_dotenv_file: bool = True) -> AppConfig:
    """Load configuration from file, environment, and defaults.

    Resolution order: defaults < config file < env vars < CLI (applied separately).
    ``DASHSCOPE_API_KEY`` and ``OSS_ACCESS_KEY_*`` only fill credentials left empty.
    """

    if load_dotenv_file:
        load_dotenv(override=False)

    file_data: dict = {}
    for path in _candidate_paths(config_path):
        if path.is_file():
            file_data = _load_file(path)
            break
    else:
        logger.debug("No config file found, using defaults")

    merged = _deep_merge(_expand_env(file_data), _env_override())
    config = _apply_key_fallbacks(_dict_to_config(merged))
    logger.debug("Config resolved: %s", config.redacted())
    return config


def apply_cli_overrides(base: AppConfig, args: Mapping[str, Any]) -> AppConfig:
    """Merge CLI-style overrides (dict of provided values) into an AppConfig."""

    translation = replace(
        base.translation,
        source_lang=args.get("source_lang") or base.translation.source_lang,
        target_lang=args.get("target_lang") or base.translation.target_lang,
        model=args.get("translation_model") or base.translation.model,
    )
    speech = replace(base.speech, model=args.get("speech_model") or base.speech.model)
    storage = replace(base.storage, bucket_name=args.get("bucket") or base.storage.bucket_name)
    ffmpeg = replace(base.ffmpeg, path=args.get("ffmpeg") or base.ffmpeg.path)
    application = replace(
        base.application,
        debug_mode=bool(args.get("verbose")) or base.application.debug_mode,
    )

    return replace(
        base,
        application=application,
        storage=storage,
        speech=speech,
        translation=translation,
        ffmpeg=ffmpeg,
    )
