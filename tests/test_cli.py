from pathlib import Path

import yaml

from srtforge.cli import main as cli
from srtforge.core.engine import SubtitleEngine
from srtforge.core.srt import SubtitleBlock, read_srt, write_srt
from srtforge.llm.base import LLMResult


class ShoutClient:
    def generate(self, request, options):
        return LLMResult(content=request.user_prompt.upper())


def _config_file(tmp_path: Path) -> Path:
    path = tmp_path / "srtforge.yaml"
    path.write_text(
        "file_upload:\n  access_key_secret: topsecret\n  bucket_name: subs\n"
        "translation:\n  dashscope:\n    api_key: tk\n    api_delay: 0\n",
        encoding="utf-8",
    )
    return path


def test_config_show_masks_secrets(tmp_path: Path, capsys):
    code = cli.main(["config", "show", "--config", str(_config_file(tmp_path))])
    assert code == cli.EXIT_SUCCESS
    shown = yaml.safe_load(capsys.readouterr().out)
    assert shown["storage"]["bucket_name"] == "subs"
    assert shown["storage"]["access_key_secret"] == "******"
    assert shown["translation"]["api_key"] == "******"


def test_invalid_config_exit_code(tmp_path: Path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("translation: [unclosed\n", encoding="utf-8")
    assert cli.main(["config", "show", "--config", str(bad)]) == cli.EXIT_CONFIG


def test_translate_without_inputs_is_usage_error(tmp_path: Path):
    code = cli.main(["translate", str(tmp_path / "missing.srt"), "--config", str(tmp_path / "none.yaml")])
    assert code == cli.EXIT_USAGE


def test_translate_without_api_key_fails(tmp_path: Path):
    source = write_srt([SubtitleBlock(1, 0, 1000, "hi")], tmp_path / "a.srt")
    code = cli.main(["translate", str(source), "--config", str(tmp_path / "none.yaml")])
    assert code == cli.EXIT_RUNTIME


def test_translate_writes_output(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(cli, "SubtitleEngine", lambda config: SubtitleEngine(config, llm_client=ShoutClient()))
    source = write_srt([SubtitleBlock(1, 0, 1000, "hi there")], tmp_path / "a.srt")
    out_dir = tmp_path / "out"

    code = cli.main([
        "translate", str(source), "-t", "German", "-o", str(out_dir), "--config", str(_config_file(tmp_path)),
    ])

    assert code == cli.EXIT_SUCCESS
    assert [b.text for b in read_srt(out_dir / "a.de.srt")] == ["HI THERE"]
