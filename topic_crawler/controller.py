"""Sequential listing crawl with resumable de-duplication."""

from __future__ import annotations

import json
import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, TextIO

from .articles import ArticleIdError, ArticleRecord, ExtractionError, build_record, parse_article_id
from .config import CrawlConfig
from .navigation import NavigablePage, NavigationError, count_listing_entries
from .records import RecordStore

LOGGER = logging.getLogger(__name__)


class CrawlStep(str, Enum):
    LISTING = "記事リストの取得"
    LINK = "記事のhref取得"
    ARTICLE_ID = "hrefから記事idを取得"
    OPEN_ARTICLE = "記事のタイトルと要約へ"
    TITLE = "記事のタイトル取得"
    SUMMARY = "記事の要約取得"
    OPEN_BODY = "記事の本文へ"
    BODY = "記事の本文取得"
    BUILD_RECORD = "記事データの作成"
    RETURN_TO_LISTING = "記事リストへ戻る"
    NEXT_PAGE = "次の記事リストへ"


class CrawlStartError(RuntimeError):
    """Raised when the initial listing page cannot be opened."""


class _StepFailed(Exception):
    def __init__(self, step: CrawlStep, cause: Exception) -> None:
        super().__init__(f"{step.value}: {cause}")
        self.step = step
        self.cause = cause


@dataclass(slots=True)
class CrawlStats:
    pages: int = 0
    captured: int = 0
    skipped_visited: int = 0
    failed: int = 0


@dataclass(slots=True)
class _ArticleVisit:
    article_id: int
    listing_url: str
    # Page transitions made since leaving the listing: 1 = summary, 2 = body.
    depth: int = 0


class CrawlController:
    """Walks listing pages and captures every article not seen before.

    The visited set is seeded from the record store and only ever grows. An
    identifier is marked visited before its pages are opened, so a failing
    article is attempted at most once per run.
    """

    def __init__(
        self,
        page: NavigablePage,
        store: RecordStore,
        config: CrawlConfig,
        *,
        progress: Optional[TextIO] = None,
        failure_stream: Optional[TextIO] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._page = page
        self._store = store
        self._config = config
        self._selectors = config.selectors
        self._progress = progress if progress is not None else sys.stdout
        self._failure_stream = failure_stream
        self._sleep = sleep
        self._visited: set[int] = set(store.seed_ids)
        self.stats = CrawlStats()
        self._depth_selectors = {
            0: self._selectors.listing_container,
            1: self._selectors.title,
            2: self._selectors.body,
        }

    @property
    def visited(self) -> frozenset[int]:
        return frozenset(self._visited)

    def run(self, start_url: str | None = None) -> CrawlStats:
        if start_url is not None:
            try:
                self._page.navigate_to(start_url)
            except NavigationError as exc:
                raise CrawlStartError(f"Failed to open {start_url}: {exc}") from exc

        max_pages = self._config.max_pages
        while True:
            self.stats.pages += 1
            self._crawl_listing()
            if max_pages is not None and self.stats.pages >= max_pages:
                LOGGER.info("Reached the page limit of %d; stopping", max_pages)
                break
            if not self._advance_page():
                break

        LOGGER.info(
            "Crawl finished after %d page(s): %d captured, %d already visited, %d failed",
            self.stats.pages,
            self.stats.captured,
            self.stats.skipped_visited,
            self.stats.failed,
        )
        return self.stats

    def _crawl_listing(self) -> None:
        self._settle(self._selectors.listing_container)
        try:
            markup = self._page.current_markup()
            listing_url = self._page.current_url()
        except NavigationError as exc:
            if self.stats.pages == 1:
                raise CrawlStartError(f"Failed to read the first listing page: {exc}") from exc
            LOGGER.error("[error] %s %s", CrawlStep.LISTING.value, exc)
            return

        entries = count_listing_entries(markup, self._selectors.listing_container)
        LOGGER.info("Listing page %d has %d entries (%s)", self.stats.pages, entries, listing_url)
        for index in range(1, entries + 1):
            self._process_entry(index, listing_url)

    def _process_entry(self, index: int, listing_url: str) -> None:
        link_selector = self._selectors.entry_link_for(index)
        try:
            href = self._page.find(link_selector).attribute("href")
        except NavigationError as exc:
            self._record_failure(CrawlStep.LINK, exc, index=index)
            return

        try:
            article_id = parse_article_id(href)
        except ArticleIdError as exc:
            self._record_failure(CrawlStep.ARTICLE_ID, exc, index=index, href=href)
            return

        if article_id in self._visited:
            self.stats.skipped_visited += 1
            self._emit(f"訪問済です, 記事id: {article_id}")
            return
        self._visited.add(article_id)

        visit = _ArticleVisit(article_id=article_id, listing_url=listing_url)
        try:
            record = self._capture(visit, link_selector)
        except _StepFailed as failure:
            self._record_failure(failure.step, failure.cause, index=index, href=href, article_id=article_id)
            self._return_to_listing(visit)
            return

        # Storage failures are fatal and propagate to the caller.
        self._store.append(record)
        self.stats.captured += 1
        self._emit(f"現在 {self.stats.captured} 個の記事を取得済みです")
        self._return_to_listing(visit)

    def _capture(self, visit: _ArticleVisit, link_selector: str) -> ArticleRecord:
        selectors = self._selectors

        self._attempt(CrawlStep.OPEN_ARTICLE, self._click, link_selector)
        visit.depth = 1
        self._settle(selectors.title)

        title = self._attempt(CrawlStep.TITLE, self._read_text, selectors.title)
        summary = self._attempt(CrawlStep.SUMMARY, self._read_text, selectors.summary)

        self._attempt(CrawlStep.OPEN_BODY, self._click, selectors.read_more)
        visit.depth = 2
        self._settle(selectors.body)

        body = self._attempt(CrawlStep.BODY, self._read_text, selectors.body)

        try:
            return build_record(visit.article_id, title, summary, body)
        except ExtractionError as exc:
            raise _StepFailed(CrawlStep.BUILD_RECORD, exc) from exc

    def _attempt(self, step: CrawlStep, action: Callable[[str], str | None], selector: str):
        try:
            return action(selector)
        except NavigationError as exc:
            raise _StepFailed(step, exc) from exc

    def _click(self, selector: str) -> None:
        self._page.find(selector).click()

    def _read_text(self, selector: str) -> str:
        return self._page.find(selector).text()

    def _return_to_listing(self, visit: _ArticleVisit) -> None:
        while visit.depth > 0:
            try:
                self._page.go_back()
            except NavigationError as exc:
                LOGGER.error("[error] %s %s", CrawlStep.RETURN_TO_LISTING.value, exc)
                self._reopen_listing(visit.listing_url)
                visit.depth = 0
                return
            visit.depth -= 1
            self._settle(self._depth_selectors[visit.depth])

    def _reopen_listing(self, listing_url: str) -> None:
        LOGGER.warning("Reopening listing page %s", listing_url)
        try:
            self._page.navigate_to(listing_url)
        except NavigationError as exc:
            LOGGER.error("[error] %s %s", CrawlStep.RETURN_TO_LISTING.value, exc)
            return
        self._settle(self._selectors.listing_container)

    def _advance_page(self) -> bool:
        try:
            self._page.find(self._selectors.next_page).click()
        except NavigationError as exc:
            LOGGER.info("No further listing page (%s: %s)", CrawlStep.NEXT_PAGE.value, exc)
            return False
        return True

    def _settle(self, selector: str) -> bool:
        timeout = self._config.wait.ready_timeout
        try:
            ready = self._page.wait_until_ready(selector, timeout)
        except NavigationError as exc:
            LOGGER.warning("Readiness check for %s failed: %s", selector, exc)
            ready = False
        if not ready:
            LOGGER.warning("%s did not appear within %.1fs", selector, timeout)

        pace_delay = self._config.wait.pace_delay
        if pace_delay > 0:
            self._sleep(pace_delay)
        return ready

    def _emit(self, message: str) -> None:
        print(message, file=self._progress, flush=True)

    def _record_failure(self, step: CrawlStep, exc: Exception, **context) -> None:
        self.stats.failed += 1
        LOGGER.error("[error] %s %s", step.value, exc)
        if self._failure_stream is None:
            return

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "step": step.name,
            "tag": step.value,
            "error": str(exc),
            "error_type": type(exc).__name__,
        }
        payload.update(context)
        self._failure_stream.write(json.dumps(payload, ensure_ascii=False) + "\n")
        self._failure_stream.flush()


__all__ = ["CrawlController", "CrawlStartError", "CrawlStats", "CrawlStep"]
