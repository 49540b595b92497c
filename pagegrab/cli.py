"""Command-line entry point for pagegrab."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Iterable, List, Sequence

from .config import DownloadConfig, load_config
from .errors import PagegrabError, StorageFailure
from .models import CaptureMode
from .reporter import ConsoleReporter
from .services import Services

logger = logging.getLogger("pagegrab.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("download", *argv)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="INI file with DIRECTORY/SCRIBD/BROWSER/DATABASE/SERVER sections (default: ./config.ini)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Directory where downloaded files are written",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_download_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("urls", nargs="+", help="One or more Scribd, SlideShare or Everand URLs")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in CaptureMode],
        default=CaptureMode.DEFAULT.value,
        help="Scribd capture mode: print pages to PDF (default) or screenshot them (image)",
    )
    parser.add_argument(
        "--filename",
        choices=["title", "id"],
        default=None,
        help="Name output files after the document title or its identifier",
    )
    parser.add_argument(
        "--render-time",
        type=int,
        default=None,
        help="Milliseconds to wait after each scroll step while loading pages",
    )
    _add_common_arguments(parser)


def _add_serve_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--host", default=None, help="Interface to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: 4173 or $UI_PORT)")
    _add_common_arguments(parser)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Capture Scribd documents, SlideShare decks and Everand podcasts with headless Chromium.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    download_parser = subparsers.add_parser("download", help="Download one or more URLs")
    _add_download_arguments(download_parser)

    serve_parser = subparsers.add_parser("serve", help="Run the local HTTP server with live progress")
    _add_serve_arguments(serve_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _build_config(args: argparse.Namespace) -> DownloadConfig:
    config = load_config(args.config)
    return config.with_overrides(
        output_root=args.output.resolve() if args.output else None,
        filename_strategy=getattr(args, "filename", None),
        render_time_ms=getattr(args, "render_time", None),
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
    )


async def download_urls(urls: List[str], mode: CaptureMode, config: DownloadConfig) -> int:
    """Download each URL in turn; returns the number of failures."""
    services = Services.create(config)
    reporter = ConsoleReporter()
    failures = 0
    try:
        for url in urls:
            try:
                artifact = await services.downloader.execute(url, mode, reporter)
            except PagegrabError as exc:
                logger.error("%s: %s", url, exc)
                failures += 1
                continue
            logger.info("Saved %s (%d bytes)", artifact.path, artifact.size)
            try:
                services.cache.save(url, str(artifact.path), artifact.title)
            except StorageFailure as exc:
                logger.warning("%s", exc)
    finally:
        await services.close()
    return failures


def _run_download(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)
    config = _build_config(args)
    overall_start = time.perf_counter()
    failures = asyncio.run(download_urls(args.urls, CaptureMode.parse(args.mode), config))
    total_elapsed = time.perf_counter() - overall_start

    total_urls = len(args.urls)
    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d failed)",
        total_elapsed,
        total_urls - failures,
        total_urls,
        failures,
    )
    return 1 if failures else 0


def _run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    _configure_logging(args.verbose)
    config = _build_config(args)
    app = create_app(config)
    logger.info("UI running at http://%s:%d", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_level="debug" if args.verbose else "info")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        if args.command == "serve":
            code = _run_serve(args)
        else:
            code = _run_download(args)
    except PagegrabError as exc:
        logger.error("%s", exc)
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
