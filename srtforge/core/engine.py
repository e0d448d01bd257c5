"""Core orchestration engine."""
from __future__ import annotations

import tempfile
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..config.model import AppConfig
from ..llm.base import CancelCheck, LLMClient, Transcriber
from ..llm.dashscope_asr import DashScopeTranscriber, TranscriptionConfig
from ..llm.dashscope_client import DashScopeConfig, DashScopeLLMClient
from ..llm.errors import LLMConfigError, LLMError
from ..logging import get_logger
from ..storage.base import ObjectStorage, UploadResult
from ..storage.errors import StorageError
from ..storage.oss_client import OssStorageClient
from .ffmpeg import FFmpegError, extract_audio
from .media import generate_subtitle_file_name, generate_translated_file_name
from .results import CommandAction, CommandResult, ProcessResult, RunResult
from .srt import SubtitleFormatError
from .transcription import transcripts_to_srt
from .translation import ProgressCallback, SubtitleTranslator

logger = get_logger(__name__)

StorageFactory = Callable[[], ObjectStorage]

DOMAIN_ERRORS = (LLMError, StorageError, FFmpegError, SubtitleFormatError, OSError, ValueError)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class SubtitleEngine:
    def __init__(
        self,
        config: AppConfig,
        storage_factory: Optional[StorageFactory] = None,
        transcriber: Optional[Transcriber] = None,
        llm_client: Optional[LLMClient] = None,
    ) -> None:
        self.config = config
        self._storage_factory = storage_factory or self._build_default_storage
        self._transcriber = transcriber
        self._llm_client = llm_client

    def _build_default_storage(self) -> ObjectStorage:
        return OssStorageClient(self.config.storage)

    def _get_transcriber(self) -> Transcriber:
        if self._transcriber is None:
            speech = self.config.speech
            self._transcriber = DashScopeTranscriber(
                TranscriptionConfig(
                    api_key=speech.api_key,
                    model=speech.model,
                    language_hints=list(speech.language_hints),
                    poll_interval=speech.poll_interval,
                    timeout=speech.timeout,
                )
            )
        return self._transcriber

    def _get_llm_client(self) -> LLMClient:
        if self._llm_client is None:
            translation = self.config.translation
            self._llm_client = DashScopeLLMClient(
                DashScopeConfig(
                    api_key=translation.api_key,
                    model=translation.model,
                    max_retries=translation.max_retries,
                )
            )
        return self._llm_client

    def extract_audio(self, source: Path, dest: Path) -> CommandResult:
        start = time.monotonic()
        run = extract_audio(
            source,
            dest,
            ffmpeg_path=self.config.ffmpeg.path,
            timeout=self.config.ffmpeg.timeout,
        )
        return CommandResult(
            result_file=Path(dest),
            processing_time_ms=_elapsed_ms(start),
            action=CommandAction.EXTRACT_AUDIO,
            output=run.stdout,
            error=run.stderr,
            exit_code=run.exit_code,
        )

    def _recognize_speech(self, audio_file: Path, should_cancel: Optional[CancelCheck]) -> str:
        if self._transcriber is None and not self.config.speech.has_api_key:
            raise LLMConfigError(
                "DashScope API key is not configured. Set speech_recognition.dashscope.api_key "
                "or the DASHSCOPE_API_KEY environment variable."
            )
        logger.info("Recognizing speech in %s (%d bytes)", audio_file, audio_file.stat().st_size)

        storage = self._storage_factory()
        upload: Optional[UploadResult] = None
        try:
            logger.info("Uploading audio to object storage...")
            upload = storage.upload_file(audio_file)
            if not upload.file_url or not upload.file_url.strip():
                raise StorageError(f"Upload succeeded but no file URL was returned: {upload}")

            logger.info("Transcribing uploaded audio...")
            documents = self._get_transcriber().transcribe(upload.file_url, should_cancel=should_cancel)
            srt_text = transcripts_to_srt(documents)
            logger.info("Speech recognition produced %d characters of subtitles", len(srt_text))
            return srt_text
        finally:
            if upload is not None and not storage.delete_uploaded(upload):
                logger.warning("Could not delete %s from object storage, please remove it manually", upload.object_key)
            storage.close()

    def generate_subtitle(
        self,
        source: Path,
        dest: Path,
        progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None,
    ) -> CommandResult:
        start = time.monotonic()
        source, dest = Path(source), Path(dest)
        with tempfile.TemporaryDirectory(prefix="srtforge_") as tmp:
            audio_file = Path(tmp) / "extracted_audio.aac"
            audio = self.extract_audio(source, audio_file)
            if not audio.succeeded or not audio_file.exists():
                raise FFmpegError(f"Audio extraction failed: {audio.error}")
            if progress is not None:
                progress(1, 3)

            srt_text = self._recognize_speech(audio_file, should_cancel)
            if progress is not None:
                progress(2, 3)

            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(srt_text, encoding="utf-8")
            if progress is not None:
                progress(3, 3)

        logger.info("Subtitle written: %s", dest)
        return CommandResult(
            result_file=dest,
            processing_time_ms=_elapsed_ms(start),
            action=CommandAction.GENERATE_SUBTITLE,
            output=f"Subtitle generated\nSource: {source}\nSubtitle: {dest}",
        )

    def translate_subtitle(
        self,
        source: Path,
        dest: Path,
        source_lang: Optional[str] = None,
        target_lang: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None,
    ) -> CommandResult:
        if self._llm_client is None and not self.config.translation.has_api_key:
            raise LLMConfigError(
                "DashScope translation API key is not configured. Set translation.dashscope.api_key "
                "or the DASHSCOPE_API_KEY environment variable."
            )
        start = time.monotonic()
        source_lang = source_lang or self.config.translation.source_lang
        target_lang = target_lang or self.config.translation.target_lang
        logger.info("Translating %s from %s to %s", source, source_lang, target_lang)

        translator = SubtitleTranslator(self._get_llm_client(), self.config.translation)
        summary = translator.translate_file(
            Path(source), Path(dest), source_lang, target_lang, progress=progress, should_cancel=should_cancel
        )
        logger.info("Translation finished: %s", summary)
        return CommandResult(
            result_file=Path(dest),
            processing_time_ms=_elapsed_ms(start),
            action=CommandAction.TRANSLATE_SUBTITLE,
            output=f"{summary}\nSource: {source}\nOutput: {dest}",
        )

    def execute(self, action: CommandAction | int, source: Path, dest: Path, **kwargs) -> CommandResult:
        try:
            action = CommandAction(action)
        except ValueError as exc:
            raise ValueError(f"Unsupported action: {action}") from exc
        if action is CommandAction.EXTRACT_AUDIO:
            return self.extract_audio(source, dest)
        if action is CommandAction.GENERATE_SUBTITLE:
            return self.generate_subtitle(source, dest, **kwargs)
        return self.translate_subtitle(source, dest, **kwargs)

    def run(self, action: CommandAction | int, source: Path, dest: Path, **kwargs) -> ProcessResult:
        source = Path(source)
        try:
            result = self.execute(action, source, dest, **kwargs)
            return ProcessResult(source=source, succeeded=True, result=result)
        except DOMAIN_ERRORS as exc:
            logger.error("Failed processing %s: %s", source, exc)
            return ProcessResult(source=source, succeeded=False, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error processing %s", source)
            return ProcessResult(source=source, succeeded=False, error=str(exc))

    def output_path_for(self, action: CommandAction, source: Path, output_dir: Path, **kwargs) -> Path:
        if action is CommandAction.TRANSLATE_SUBTITLE:
            name = generate_translated_file_name(
                source, kwargs.get("target_lang") or self.config.translation.target_lang
            )
        elif action is CommandAction.EXTRACT_AUDIO:
            name = f"{Path(source).stem}.aac"
        else:
            name = generate_subtitle_file_name(source)
        return Path(output_dir) / name

    def run_batch(
        self,
        action: CommandAction,
        sources: Iterable[Path],
        output_dir: Optional[Path] = None,
        **kwargs,
    ) -> RunResult:
        sources = [Path(s) for s in sources]
        details: List[ProcessResult] = []
        processed = failed = 0
        for source in sources:
            out_dir = Path(output_dir) if output_dir is not None else source.parent
            dest = self.output_path_for(action, source, out_dir, **kwargs)
            result = self.run(action, source, dest, **kwargs)
            details.append(result)
            if result.succeeded:
                processed += 1
            else:
                failed += 1
        return RunResult(total=len(sources), processed=processed, failed=failed, details=details)
