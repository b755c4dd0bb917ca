"""Command-line entrypoint for the resumable topic crawl."""

from __future__ import annotations

import argparse
import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Sequence

from .config import DEFAULT_PACE_DELAY, DEFAULT_READY_TIMEOUT, DEFAULT_START_URL, CrawlConfig
from .controller import CrawlController, CrawlStartError
from .navigation import BrowserSession, BrowserStartError
from .records import RecordStore, RecordStoreError, UrlListError, load_url_list

LOGGER = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Crawl news topic listings and append new articles to a CSV record file",
    )
    parser.add_argument(
        "record_file",
        type=Path,
        help="CSV file to append articles to (created when missing; its ids are skipped on resume)",
    )
    parser.add_argument(
        "-u",
        "--url-list",
        type=Path,
        default=None,
        help="Newline-delimited list of URLs to validate before crawling",
    )
    parser.add_argument("--start-url", type=str, default=DEFAULT_START_URL, help="First listing page to open")
    parser.add_argument(
        "--ready-timeout",
        type=float,
        default=DEFAULT_READY_TIMEOUT,
        help="Seconds to wait for each page to render its expected content (default: 10)",
    )
    parser.add_argument(
        "--pace-delay",
        type=float,
        default=DEFAULT_PACE_DELAY,
        help="Fixed pause in seconds after every navigation step (default: 5; 0 disables)",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Stop after this many listing pages (0 or negative disables the limit)",
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser window instead of running headless")
    parser.add_argument(
        "--failure-log",
        type=Path,
        default=None,
        help="Append one JSON line per failed article step to this file",
    )
    parser.add_argument("--no-fsync", action="store_true", help="Flush rows without forcing them to disk")
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO)")
    return parser


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _apply_page_limit(arg_value: int | None) -> int | None:
    if arg_value is None or arg_value <= 0:
        return None
    return arg_value


def build_config(args: argparse.Namespace) -> CrawlConfig:
    if args.ready_timeout <= 0:
        raise ValueError("--ready-timeout must be positive")
    if args.pace_delay < 0:
        raise ValueError("--pace-delay must not be negative")

    config = CrawlConfig(
        record_path=args.record_file,
        start_url=args.start_url,
        url_list_path=args.url_list,
        max_pages=_apply_page_limit(args.max_pages),
        fsync=not args.no_fsync,
        failure_log=args.failure_log,
    )
    config.wait.ready_timeout = args.ready_timeout
    config.wait.pace_delay = args.pace_delay
    config.browser.headless = not args.headed
    return config


def run_crawl(config: CrawlConfig, *, browser_factory=None) -> int:
    if config.url_list_path is not None:
        urls = load_url_list(config.url_list_path)
        LOGGER.info("Validated %d URL(s) from %s", len(urls), config.url_list_path)

    config.ensure_directories()
    with ExitStack() as stack:
        store = stack.enter_context(RecordStore.open(config.record_path, fsync=config.fsync))
        if not store.created:
            print(f"訪問済id数: {len(store.seed_ids)}", flush=True)

        failure_stream = None
        if config.failure_log is not None:
            failure_stream = stack.enter_context(config.failure_log.open("a", encoding="utf-8"))

        factory = browser_factory or BrowserSession
        page = stack.enter_context(factory(config.browser))
        controller = CrawlController(page, store, config, failure_stream=failure_stream)
        controller.run(config.start_url)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = build_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        return run_crawl(config)
    except (RecordStoreError, UrlListError, BrowserStartError, CrawlStartError) as exc:
        LOGGER.error("%s", exc)
        return 1
    except OSError as exc:
        LOGGER.error("Failed to prepare output files: %s", exc)
        return 1
    except KeyboardInterrupt:
        LOGGER.warning("Interrupted; the record file holds every article captured so far")
        return 130


__all__ = ["build_arg_parser", "build_config", "configure_logging", "main", "run_crawl"]


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
