"""Command line entrypoint for SrtForge."""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Callable, Optional

import yaml
from tqdm import tqdm

from ..config.loader import ConfigError, apply_cli_overrides, load_config
from ..config.model import AppConfig
from ..core.engine import SubtitleEngine
from ..core.ffmpeg import FFmpegError
from ..core.media import is_audio_file, is_subtitle_file, is_video_file
from ..core.results import CommandAction, RunResult
from ..logging import get_logger, setup_logging
from ..llm.errors import LLMError
from ..storage.errors import StorageError
from ..storage.oss_client import OssStorageClient

EXIT_SUCCESS = 0
EXIT_USAGE = 1
EXIT_CONFIG = 2
EXIT_LLM = 3
EXIT_RUNTIME = 4
EXIT_STORAGE = 5

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="srtforge", description="Generate and translate SRT subtitles.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate subtitles from video or audio files")
    generate.add_argument("inputs", nargs="+", help="Video or audio files")
    generate.add_argument("-o", "--output-dir", type=str, default=None, help="Output directory (default: next to input)")
    generate.add_argument("--speech-model", dest="speech_model", type=str, help="Speech recognition model")
    generate.add_argument("--bucket", type=str, help="OSS bucket for the temporary audio upload")
    generate.add_argument("--ffmpeg", type=str, help="Path to the ffmpeg executable")
    _add_shared_options(generate)

    translate = subparsers.add_parser("translate", help="Translate SRT subtitle files")
    translate.add_argument("inputs", nargs="+", help="SRT files")
    translate.add_argument("-o", "--output-dir", type=str, default=None, help="Output directory (default: next to input)")
    translate.add_argument("-s", "--source-lang", dest="source_lang", type=str, help="Source language, e.g. Chinese")
    translate.add_argument("-t", "--target-lang", dest="target_lang", type=str, help="Target language, e.g. English")
    translate.add_argument("-m", "--model", dest="translation_model", type=str, help="Translation model name")
    _add_shared_options(translate)

    extract = subparsers.add_parser("extract-audio", help="Extract a mono 16 kHz AAC track with FFmpeg")
    extract.add_argument("input", help="Video file")
    extract.add_argument("-o", "--output", type=str, default=None, help="Output .aac file")
    extract.add_argument("--ffmpeg", type=str, help="Path to the ffmpeg executable")
    _add_shared_options(extract)

    storage = subparsers.add_parser("storage", help="Object storage utilities")
    storage_sub = storage.add_subparsers(dest="storage_command", required=True)
    ls = storage_sub.add_parser("ls", help="List objects")
    ls.add_argument("prefix", nargs="?", default=None)
    ls.add_argument("-n", "--limit", type=int, default=None)
    _add_shared_options(ls)
    upload = storage_sub.add_parser("upload", help="Upload a file and print its URL")
    upload.add_argument("file")
    _add_shared_options(upload)
    download = storage_sub.add_parser("download", help="Download an object")
    download.add_argument("key")
    download.add_argument("dest")
    _add_shared_options(download)
    rm = storage_sub.add_parser("rm", help="Delete an object")
    rm.add_argument("key")
    _add_shared_options(rm)

    config_cmd = subparsers.add_parser("config", help="Configuration utilities")
    config_cmd.add_argument("action", choices=["show"], help="Show resolved configuration (secrets masked)")
    _add_shared_options(config_cmd)

    gui = subparsers.add_parser("gui", help="Launch the desktop application")
    _add_shared_options(gui)

    return parser


def _add_shared_options(sub: argparse.ArgumentParser) -> None:
    sub.add_argument("--config", type=str, default=None, help="Path to srtforge YAML config")
    sub.add_argument("-v", "--verbose", action="store_true")


def _report(result: RunResult, action: CommandAction) -> int:
    for detail in result.details:
        if detail.succeeded and detail.result is not None:
            logger.info("%s -> %s (%s)", detail.source, detail.result.result_file, detail.result.formatted_time)
        else:
            logger.error("%s failed: %s", detail.source, detail.error)
    logger.info(
        "%s complete. Total files: %d, succeeded: %d, failed: %d",
        action.description,
        result.total,
        result.processed,
        result.failed,
    )
    return EXIT_SUCCESS if result.failed == 0 else EXIT_RUNTIME


def _filter_inputs(inputs: list[str], accept: Callable[[Path], bool], kind: str) -> list[Path]:
    paths = []
    for raw in inputs:
        path = Path(raw).expanduser()
        if not path.is_file():
            logger.error("Not a file: %s", path)
            continue
        if not accept(path):
            logger.warning("Skipping %s: not a %s file", path, kind)
            continue
        paths.append(path)
    return paths


def _run_generate(config: AppConfig, args: dict) -> int:
    sources = _filter_inputs(args["inputs"], lambda p: is_video_file(p) or is_audio_file(p), "video/audio")
    if not sources:
        logger.error("No video or audio input files")
        return EXIT_USAGE
    engine = SubtitleEngine(config)
    output_dir = Path(args["output_dir"]).expanduser() if args.get("output_dir") else None
    result = engine.run_batch(CommandAction.GENERATE_SUBTITLE, sources, output_dir)
    return _report(result, CommandAction.GENERATE_SUBTITLE)


def _run_translate(config: AppConfig, args: dict) -> int:
    sources = _filter_inputs(args["inputs"], is_subtitle_file, "subtitle")
    if not sources:
        logger.error("No subtitle input files")
        return EXIT_USAGE
    engine = SubtitleEngine(config)
    output_dir = Path(args["output_dir"]).expanduser() if args.get("output_dir") else None

    with tqdm(total=0, desc="Translating", unit="line", disable=None) as pbar:
        def progress(done: int, total: int) -> None:
            pbar.total = total
            pbar.n = done
            pbar.refresh()

        result = engine.run_batch(
            CommandAction.TRANSLATE_SUBTITLE,
            sources,
            output_dir,
            source_lang=config.translation.source_lang,
            target_lang=config.translation.target_lang,
            progress=progress,
        )
    return _report(result, CommandAction.TRANSLATE_SUBTITLE)


def _run_extract(config: AppConfig, args: dict) -> int:
    source = Path(args["input"]).expanduser()
    dest = Path(args["output"]).expanduser() if args.get("output") else source.with_suffix(".aac")
    if dest.resolve() == source.resolve():
        dest = source.with_name(f"{source.stem}{CommandAction.EXTRACT_AUDIO.output_suffix}")
    result = SubtitleEngine(config).extract_audio(source, dest)
    logger.info("Audio written to %s (%s)", result.result_file, result.formatted_time)
    return EXIT_SUCCESS


def _run_storage(config: AppConfig, args: dict) -> int:
    with OssStorageClient(config.storage) as storage:
        command = args["storage_command"]
        if command == "ls":
            for info in storage.list_objects(prefix=args.get("prefix"), limit=args.get("limit")):
                modified = info.last_modified.isoformat() if info.last_modified else "-"
                print(f"{info.size:>12}  {modified}  {info.key}")
        elif command == "upload":
            uploaded = storage.upload_file(Path(args["file"]).expanduser())
            print(uploaded.file_url)
        elif command == "download":
            storage.download_file(args["key"], Path(args["dest"]).expanduser())
        elif command == "rm":
            if not storage.delete_object(args["key"]):
                return EXIT_STORAGE
    return EXIT_SUCCESS


def _run_gui(config_path: Optional[Path]) -> int:  # pragma: no cover - UI
    from ..gui.app import run_app

    return run_app(config_path)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args_ns = parser.parse_args(argv)
    args = vars(args_ns)

    setup_logging(level=(logging.DEBUG if args.get("verbose") else logging.INFO))
    config_path = Path(args["config"]).expanduser() if args.get("config") else None

    try:
        base_config = load_config(config_path)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG

    merged = apply_cli_overrides(base_config, args)
    if merged.application.debug_mode:
        logging.getLogger("srtforge").setLevel(logging.DEBUG)

    command = args_ns.command
    if command == "config":
        print(yaml.safe_dump(asdict(merged.redacted()), sort_keys=False, allow_unicode=True), end="")
        return EXIT_SUCCESS
    if command == "gui":
        return _run_gui(config_path)

    try:
        if command == "generate":
            return _run_generate(merged, args)
        if command == "translate":
            return _run_translate(merged, args)
        if command == "extract-audio":
            return _run_extract(merged, args)
        if command == "storage":
            return _run_storage(merged, args)
    except StorageError as exc:
        logger.error("Object storage failed: %s", exc)
        return EXIT_STORAGE
    except LLMError as exc:
        logger.error("LLM communication failed: %s", exc)
        return EXIT_LLM
    except (FFmpegError, OSError, ValueError) as exc:
        logger.error("%s", exc)
        return EXIT_RUNTIME
    except Exception as exc:  # pragma: no cover - unexpected
        logger.exception("Unexpected error: %s", exc)
        return EXIT_RUNTIME

    parser.error(f"unknown command {command!r}")
    return EXIT_USAGE


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
