from __future__ import annotations

import pytest

from srtforge.core import ffmpeg

_ENV_VARS = [
    "DASHSCOPE_API_KEY",
    "OSS_ACCESS_KEY_ID",
    "OSS_ACCESS_KEY_SECRET",
    "OSS_ENDPOINT",
    "OSS_BUCKET",
    "SRTFORGE_FFMPEG",
    "SRTFORGE_DEBUG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    ffmpeg.reset_cache()
    yield
    ffmpeg.reset_cache()
