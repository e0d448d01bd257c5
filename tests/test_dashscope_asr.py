from types import SimpleNamespace

import pytest
import requests

from srtforge.llm.dashscope_asr import DashScopeTranscriber, TranscriptionConfig
from srtforge.llm.errors import LLMCancelledError, LLMNetworkError, LLMResponseError

DOCUMENT = {"transcripts": [{"sentences": [{"text": "hi", "begin_time": 0, "end_time": 800}]}]}


class FakeTranscription:
    def __init__(self, statuses, results=None):
        self.statuses = list(statuses)
        self.results = results or [
            {"subtask_status": "SUCCEEDED", "transcription_url": "https://result/1.json"},
        ]
        self.submitted = []
        self.fetches = 0

    def async_call(self, model, file_urls, language_hints, api_key):
        self.submitted.append((model, file_urls, language_hints, api_key))
        return SimpleNamespace(status_code=200, request_id="r", output={"task_id": "task-1"})

    def fetch(self, task, api_key):
        self.fetches += 1
        status = self.statuses.pop(0)
        output = {"task_id": task, "task_status": status}
        if status == "SUCCEEDED":
            output["results"] = self.results
        return SimpleNamespace(status_code=200, output=output)


class FakeResponse:
    def __init__(self, payload, status_ok=True):
        self.payload = payload
        self.status_ok = status_ok

    def raise_for_status(self):
        if not self.status_ok:
            raise requests.HTTPError("404")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.urls = []
        self.closed = False

    def get(self, url, timeout=None):
        self.urls.append((url, timeout))
        return self.response

    def close(self):
        self.closed = True


def _transcriber(transcription, session=None, clock=None, timeout=60.0):
    config = TranscriptionConfig(api_key="k", language_hints=["en"], poll_interval=0.5, timeout=timeout)
    return DashScopeTranscriber(
        config,
        transcription=transcription,
        session=session or FakeSession(FakeResponse(DOCUMENT)),
        sleep=lambda s: None,
        clock=clock or (lambda: 0.0),
    )


def test_transcribe_polls_until_done():
    transcription = FakeTranscription(["PENDING", "RUNNING", "SUCCEEDED"])
    session = FakeSession(FakeResponse(DOCUMENT))
    documents = _transcriber(transcription, session).transcribe("https://bucket/audio.aac")
    assert documents == [DOCUMENT]
    assert transcription.fetches == 3
    assert transcription.submitted[0] == ("paraformer-v2", ["https://bucket/audio.aac"], ["en"], "k")
    assert session.urls[0][0] == "https://result/1.json"


def test_failed_subtasks_are_skipped():
    transcription = FakeTranscription(
        ["SUCCEEDED"],
        results=[
            {"subtask_status": "FAILED", "code": "InvalidFile", "file_url": "x"},
            {"subtask_status": "SUCCEEDED", "transcription_url": "https://result/2.json"},
        ],
    )
    documents = _transcriber(transcription).transcribe("https://bucket/a.aac")
    assert len(documents) == 1


def test_failed_task_raises():
    with pytest.raises(LLMResponseError, match="FAILED"):
        _transcriber(FakeTranscription(["FAILED"])).transcribe("https://bucket/a.aac")


def test_timeout_raises():
    ticks = iter([0.0, 100.0])
    with pytest.raises(LLMResponseError, match="timed out"):
        _transcriber(FakeTranscription(["RUNNING"]), clock=lambda: next(ticks), timeout=5).transcribe("u")


def test_cancel_before_poll():
    transcription = FakeTranscription(["RUNNING"])
    with pytest.raises(LLMCancelledError):
        _transcriber(transcription).transcribe("u", should_cancel=lambda: True)
    assert transcription.fetches == 0


def test_result_download_error():
    session = FakeSession(FakeResponse({}, status_ok=False))
    with pytest.raises(LLMNetworkError):
        _transcriber(FakeTranscription(["SUCCEEDED"]), session).transcribe("u")


def test_close_closes_session():
    session = FakeSession(FakeResponse(DOCUMENT))
    _transcriber(FakeTranscription([]), session).close()
    assert session.closed
