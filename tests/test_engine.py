from pathlib import Path

import pytest

from srtforge.config.model import AppConfig, TranslationConfig
from srtforge.core import engine as engine_module
from srtforge.core.engine import SubtitleEngine
from srtforge.core.ffmpeg import FFmpegRun
from srtforge.core.results import CommandAction
from srtforge.core.srt import SubtitleBlock, read_srt, write_srt
from srtforge.llm.base import LLMResult
from srtforge.llm.errors import LLMResponseError
from srtforge.storage.base import UploadResult


class FakeStorage:
    def __init__(self):
        self.uploaded = []
        self.deleted = []
        self.closed = False

    def upload_file(self, path):
        self.uploaded.append(path)
        return UploadResult(object_key="uploads/x.aac", size=1, file_url="https://b/x.aac", original_file=path)

    def delete_uploaded(self, result):
        self.deleted.append(result.object_key)
        return True

    def close(self):
        self.closed = True


class FakeTranscriber:
    def __init__(self, documents=None, error=None):
        self.documents = documents or []
        self.error = error
        self.urls = []

    def transcribe(self, file_url, should_cancel=None):
        self.urls.append(file_url)
        if self.error is not None:
            raise self.error
        return self.documents


class EchoClient:
    def generate(self, request, options):
        return LLMResult(content=request.user_prompt.replace("hello", "bonjour"))


@pytest.fixture()
def fake_ffmpeg(monkeypatch):
    def fake_extract(source, dest, ffmpeg_path=None, timeout=120):
        Path(dest).write_bytes(b"aac")
        return FFmpegRun(stdout="", stderr="", exit_code=0)

    monkeypatch.setattr(engine_module, "extract_audio", fake_extract)


@pytest.fixture()
def video(tmp_path: Path) -> Path:
    path = tmp_path / "talk.mp4"
    path.write_bytes(b"video")
    return path


def test_generate_subtitle(tmp_path: Path, video: Path, fake_ffmpeg):
    storage = FakeStorage()
    documents = [{"transcripts": [{"sentences": [{"text": "hello", "begin_time": 0, "end_time": 900}]}]}]
    transcriber = FakeTranscriber(documents)
    progress = []
    engine = SubtitleEngine(AppConfig(), storage_factory=lambda: storage, transcriber=transcriber)

    result = engine.generate_subtitle(video, tmp_path / "talk.srt", progress=lambda d, t: progress.append(d))

    assert result.action is CommandAction.GENERATE_SUBTITLE
    assert [b.text for b in read_srt(result.result_file)] == ["hello"]
    assert transcriber.urls == ["https://b/x.aac"]
    assert storage.deleted == ["uploads/x.aac"]
    assert storage.closed
    assert progress == [1, 2, 3]


def test_uploaded_audio_deleted_on_failure(tmp_path: Path, video: Path, fake_ffmpeg):
    storage = FakeStorage()
    engine = SubtitleEngine(
        AppConfig(),
        storage_factory=lambda: storage,
        transcriber=FakeTranscriber(error=LLMResponseError("boom")),
    )
    outcome = engine.run(CommandAction.GENERATE_SUBTITLE, video, tmp_path / "talk.srt")
    assert not outcome.succeeded
    assert "boom" in outcome.error
    assert storage.deleted == ["uploads/x.aac"]
    assert storage.closed


def test_generate_without_api_key_fails_before_upload(tmp_path: Path, video: Path, fake_ffmpeg):
    storage = FakeStorage()
    engine = SubtitleEngine(AppConfig(), storage_factory=lambda: storage)
    outcome = engine.run(CommandAction.GENERATE_SUBTITLE, video, tmp_path / "talk.srt")
    assert not outcome.succeeded
    assert "API key" in outcome.error
    assert storage.uploaded == []


def test_translate_subtitle(tmp_path: Path):
    source = write_srt([SubtitleBlock(1, 0, 1000, "hello")], tmp_path / "talk.srt")
    config = AppConfig(translation=TranslationConfig(api_delay=0, target_lang="French"))
    engine = SubtitleEngine(config, llm_client=EchoClient())
    result = engine.execute(CommandAction.TRANSLATE_SUBTITLE, source, tmp_path / "talk.fr.srt")
    assert "from Chinese to French" in result.output
    assert [b.text for b in read_srt(result.result_file)] == ["bonjour"]


def test_execute_rejects_unknown_action(tmp_path: Path):
    with pytest.raises(ValueError):
        SubtitleEngine(AppConfig()).execute(9, tmp_path / "a", tmp_path / "b")


def test_run_batch_names_outputs(tmp_path: Path):
    good = write_srt([SubtitleBlock(1, 0, 1000, "hello")], tmp_path / "a.srt")
    empty = tmp_path / "b.srt"
    empty.write_text("", encoding="utf-8")
    config = AppConfig(translation=TranslationConfig(api_delay=0, target_lang="Japanese"))
    engine = SubtitleEngine(config, llm_client=EchoClient())

    run = engine.run_batch(CommandAction.TRANSLATE_SUBTITLE, [good, empty], tmp_path / "out")

    assert (run.total, run.processed, run.failed) == (2, 1, 1)
    assert run.details[0].result.result_file == tmp_path / "out" / "a.ja.srt"
    assert (tmp_path / "out" / "a.ja.srt").is_file()
