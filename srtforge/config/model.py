"""Typed configuration models for SrtForge."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional

DEFAULT_OSS_ENDPOINT = "https://oss-cn-hangzhou.aliyuncs.com"
MASK = "******"


@dataclass(slots=True)
class LanguageOption:
    code: str
    name: str


DEFAULT_LANGUAGES: List[LanguageOption] = [
    LanguageOption("zh", "Chinese"),
    LanguageOption("en", "English"),
    LanguageOption("ja", "Japanese"),
    LanguageOption("ko", "Korean"),
    LanguageOption("fr", "French"),
    LanguageOption("de", "German"),
    LanguageOption("es", "Spanish"),
    LanguageOption("ru", "Russian"),
    LanguageOption("pt", "Portuguese"),
    LanguageOption("it", "Italian"),
    LanguageOption("nl", "Dutch"),
    LanguageOption("ar", "Arabic"),
    LanguageOption("th", "Thai"),
    LanguageOption("vi", "Vietnamese"),
]


@dataclass(slots=True)
class ApplicationConfig:
    debug_mode: bool = False


@dataclass(slots=True)
class StorageConfig:
    access_key_id: str = ""
    access_key_secret: str = ""
    endpoint: str = DEFAULT_OSS_ENDPOINT
    bucket_name: str = ""
    object_key_prefix: str = "uploads/"
    use_https: bool = True
    connection_timeout: int = 30000  # ms
    socket_timeout: int = 60000  # ms
    max_connections: int = 100
    multipart_threshold: int = 10 * 1024 * 1024
    part_size: int = 1024 * 1024
    upload_threads: int = 4
    url_mode: str = "public"  # public | signed
    url_expires: int = 3600  # s
    max_retries: int = 3

    @property
    def has_credentials(self) -> bool:
        return bool(self.access_key_id.strip() and self.access_key_secret.strip())


@dataclass(slots=True)
class SpeechConfig:
    api_key: str = ""
    model: str = "paraformer-v2"
    language_hints: List[str] = field(default_factory=lambda: ["zh", "ja", "en"])
    poll_interval: float = 2.0
    timeout: float = 1800.0

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


@dataclass(slots=True)
class TranslationConfig:
    api_key: str = ""
    model: str = "qwen-mt-plus"
    batch_size: int = 10
    api_delay: int = 1000  # ms between batches
    source_lang: str = "Chinese"
    target_lang: str = "English"
    supported_languages: List[LanguageOption] = field(default_factory=lambda: list(DEFAULT_LANGUAGES))
    max_retries: int = 3
    temperature: Optional[float] = None
    top_p: Optional[float] = None

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


@dataclass(slots=True)
class FFmpegConfig:
    path: Optional[str] = None
    timeout: int = 120


@dataclass(slots=True)
class AppConfig:
    application: ApplicationConfig = field(default_factory=ApplicationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    ffmpeg: FFmpegConfig = field(default_factory=FFmpegConfig)

    def redacted(self) -> "AppConfig":
        """Return a copy with every secret masked, suitable for printing."""

        def _mask(value: str) -> str:
            return MASK if value else ""

        return replace(
            self,
            storage=replace(
                self.storage,
                access_key_id=_mask(self.storage.access_key_id),
                access_key_secret=_mask(self.storage.access_key_secret),
            ),
            speech=replace(self.speech, api_key=_mask(self.speech.api_key)),
            translation=replace(self.translation, api_key=_mask(self.translation.api_key)),
        )
