"""Configuration objects shared by the crawl entrypoint and controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_START_URL = "https://news.livedoor.com/topics/category/dom/"
DEFAULT_READY_TIMEOUT = 10.0
DEFAULT_PACE_DELAY = 5.0

RECORD_HEADER = ("id", "title", "body", "summary1", "summary2", "summary3")


@dataclass(slots=True)
class SelectorConfig:
    """CSS selectors describing the listing and article pages of the target site."""

    listing_container: str = ".articleList"
    entry_link: str = ".articleList > li:nth-child({index}) > a"
    title: str = ".topicsTtl > a"
    summary: str = ".summaryList"
    read_more: str = ".articleMore > a"
    body: str = ".articleBody > span"
    next_page: str = ".next > a"

    def entry_link_for(self, index: int) -> str:
        if index < 1:
            raise ValueError("Listing entries are addressed from index 1")
        return self.entry_link.format(index=index)


@dataclass(slots=True)
class BrowserConfig:
    headless: bool = True
    disable_images: bool = True
    no_sandbox: bool = True
    disable_dev_shm_usage: bool = True
    disable_gpu: bool = True
    navigation_timeout: float = 30.0

    def launch_args(self) -> list[str]:
        args: list[str] = []
        if self.disable_images:
            args.append("--blink-settings=imagesEnabled=false")
        if self.disable_gpu:
            args.append("--disable-gpu")
        if self.no_sandbox:
            args.append("--no-sandbox")
        if self.disable_dev_shm_usage:
            args.append("--disable-dev-shm-usage")
        return args


@dataclass(slots=True)
class WaitConfig:
    """Bounded readiness waits used after every navigation step."""

    ready_timeout: float = DEFAULT_READY_TIMEOUT
    # Unconditional pause after each navigation, on top of the readiness wait.
    pace_delay: float = DEFAULT_PACE_DELAY


@dataclass(slots=True)
class CrawlConfig:
    record_path: Path
    start_url: str = DEFAULT_START_URL
    url_list_path: Optional[Path] = None
    max_pages: int | None = None
    fsync: bool = True
    failure_log: Optional[Path] = None
    selectors: SelectorConfig = field(default_factory=SelectorConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    wait: WaitConfig = field(default_factory=WaitConfig)

    def ensure_directories(self) -> None:
        self.record_path.parent.mkdir(parents=True, exist_ok=True)
        if self.failure_log:
            self.failure_log.parent.mkdir(parents=True, exist_ok=True)
