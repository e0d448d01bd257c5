from types import SimpleNamespace

import pytest
import requests

from srtforge.core.retry import RetryPolicy
from srtforge.llm.base import LLMGenerationOptions, LLMRequest
from srtforge.llm.dashscope_client import DashScopeConfig, DashScopeLLMClient, raise_for_response
from srtforge.llm.errors import (
    LLMConfigError,
    LLMNetworkError,
    LLMRateLimitError,
    LLMResponseError,
)

NO_WAIT = RetryPolicy(max_attempts=3, sleep=lambda s: None)


def _response(content, status_code=200, code="", message=""):
    return SimpleNamespace(
        status_code=status_code,
        code=code,
        message=message,
        request_id="req-1",
        output={"choices": [{"message": {"role": "assistant", "content": content}}]},
        usage={"input_tokens": 3, "output_tokens": 2},
    )


class FakeGeneration:
    def __init__(self, responses):
        self.responses = list(responses)
        self.payloads = []

    def call(self, **payload):
        self.payloads.append(payload)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _client(generation, model="qwen-mt-plus"):
    return DashScopeLLMClient(DashScopeConfig(api_key="k", model=model), generation=generation, retry=NO_WAIT)


def test_missing_api_key():
    with pytest.raises(LLMConfigError):
        DashScopeLLMClient(DashScopeConfig(api_key=" ", model="m"))


def test_generate_success():
    generation = FakeGeneration([_response("[1] Bonjour")])
    result = _client(generation).generate(
        LLMRequest(user_prompt="[1] Hello"), LLMGenerationOptions(source_lang="English", target_lang="French")
    )
    assert result.content == "[1] Bonjour"
    assert result.request_id == "req-1"
    assert result.usage == {"input_tokens": 3, "output_tokens": 2}
    payload = generation.payloads[0]
    assert payload["messages"] == [{"role": "user", "content": "[1] Hello"}]
    assert payload["result_format"] == "message"
    assert payload["translation_options"] == {"source_lang": "English", "target_lang": "French"}
    assert "temperature" not in payload


def test_generate_includes_system_prompt_and_options():
    generation = FakeGeneration([_response("ok")])
    _client(generation, model="qwen-plus").generate(
        LLMRequest(user_prompt="u", system_prompt="s"), LLMGenerationOptions(temperature=0.2)
    )
    payload = generation.payloads[0]
    assert payload["messages"][0] == {"role": "system", "content": "s"}
    assert payload["temperature"] == 0.2
    assert "translation_options" not in payload


def test_generate_retries_rate_limit():
    generation = FakeGeneration([
        _response("", status_code=429, code="Throttling.RateQuota"),
        requests.ConnectionError("reset"),
        _response("done"),
    ])
    result = _client(generation).generate(LLMRequest(user_prompt="u"), LLMGenerationOptions())
    assert result.content == "done"
    assert len(generation.payloads) == 3


def test_generate_gives_up_after_retries():
    generation = FakeGeneration([requests.Timeout("slow")] * 3)
    with pytest.raises(LLMNetworkError):
        _client(generation).generate(LLMRequest(user_prompt="u"), LLMGenerationOptions())


def test_generate_bad_response():
    generation = FakeGeneration([SimpleNamespace(status_code=200, output={"unexpected": True})])
    with pytest.raises(LLMResponseError):
        _client(generation).generate(LLMRequest(user_prompt="u"), LLMGenerationOptions())


def test_raise_for_response_mapping():
    with pytest.raises(LLMConfigError):
        raise_for_response(_response("", status_code=401, code="InvalidApiKey"))
    with pytest.raises(LLMRateLimitError):
        raise_for_response(_response("", status_code=429))
    with pytest.raises(LLMNetworkError):
        raise_for_response(_response("", status_code=503))
    with pytest.raises(LLMResponseError):
        raise_for_response(_response("", status_code=400, code="InvalidParameter"))
    raise_for_response(_response("fine"))


def test_stream_cumulative_chunks():
    generation = FakeGeneration([iter([_response("Hel"), _response("Hello"), _response("Hello world")])])
    deltas = list(_client(generation).stream(LLMRequest(user_prompt="u"), LLMGenerationOptions()))
    assert deltas == ["Hel", "lo", " world"]
    assert generation.payloads[0]["stream"] is True


def test_stream_incremental_chunks():
    generation = FakeGeneration([iter([_response("one "), _response("two")])])
    deltas = list(_client(generation, model="qwen-plus").stream(LLMRequest(user_prompt="u"), LLMGenerationOptions()))
    assert "".join(deltas) == "one two"


def test_stream_error_chunk():
    generation = FakeGeneration([iter([_response("", status_code=400, code="InvalidParameter")])])
    with pytest.raises(LLMResponseError):
        list(_client(generation).stream(LLMRequest(user_prompt="u"), LLMGenerationOptions()))


def test_stream_incremental_keeps_repeated_tokens():
    generation = FakeGeneration([iter([_response("ha"), _response("ha"), _response("!")])])
    deltas = list(_client(generation, model="qwen-plus").stream(LLMRequest(user_prompt="u"), LLMGenerationOptions()))
    assert "".join(deltas) == "haha!"
    assert generation.payloads[0]["incremental_output"] is True


def test_stream_cumulative_model_does_not_request_increments():
    generation = FakeGeneration([iter([_response("ha"), _response("haha")])])
    deltas = list(_client(generation).stream(LLMRequest(user_prompt="u"), LLMGenerationOptions()))
    assert deltas == ["ha", "ha"]
    assert "incremental_output" not in generation.payloads[0]
