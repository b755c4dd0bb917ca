import unittest
from unittest.mock import MagicMock, patch

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from topic_crawler.config import BrowserConfig, SelectorConfig
from topic_crawler.navigation import (
    BrowserSession,
    BrowserStartError,
    NavigationError,
    PlaywrightPage,
    _abort_images,
    count_listing_entries,
)

LISTING_HTML = """
<html><body>
  <ul class="articleList">
    <li><a href="/topics/detail/1/">one</a></li>
    <li><a href="/topics/detail/2/">two</a></li>
    <li><span>ad slot</span></li>
  </ul>
  <div class="next"><a href="?p=2">next</a></div>
</body></html>
"""


class CountListingEntriesTestCase(unittest.TestCase):
    def test_counts_direct_children(self) -> None:
        self.assertEqual(count_listing_entries(LISTING_HTML, ".articleList"), 3)

    def test_missing_container_counts_zero(self) -> None:
        self.assertEqual(count_listing_entries("<html><body></body></html>", ".articleList"), 0)


class SelectorConfigTestCase(unittest.TestCase):
    def test_entry_link_is_position_scoped(self) -> None:
        selectors = SelectorConfig()
        self.assertEqual(selectors.entry_link_for(3), ".articleList > li:nth-child(3) > a")

    def test_entry_index_starts_at_one(self) -> None:
        with self.assertRaises(ValueError):
            SelectorConfig().entry_link_for(0)


class BrowserConfigTestCase(unittest.TestCase):
    def test_launch_args_cover_fixed_profile(self) -> None:
        self.assertEqual(
            BrowserConfig().launch_args(),
            [
                "--blink-settings=imagesEnabled=false",
                "--disable-gpu",
                "--no-sandbox",
                "--disable-dev-shm-usage",
            ],
        )


class PlaywrightPageTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.raw_page = MagicMock()
        self.locator = self.raw_page.locator.return_value.first
        self.locator.count.return_value = 1
        self.page = PlaywrightPage(self.raw_page, timeout=2.0)

    def test_reads_attribute_and_text(self) -> None:
        self.locator.get_attribute.return_value = "/topics/detail/9/"
        self.locator.inner_text.return_value = "Headline"

        self.assertEqual(self.page.find(".a").attribute("href"), "/topics/detail/9/")
        self.assertEqual(self.page.find(".a").text(), "Headline")
        self.locator.get_attribute.assert_called_with("href", timeout=2000)

    def test_missing_element_fails_fast(self) -> None:
        self.locator.count.return_value = 0

        with self.assertRaises(NavigationError):
            self.page.find(".missing").click()
        self.locator.click.assert_not_called()

    def test_missing_attribute_raises(self) -> None:
        self.locator.get_attribute.return_value = None

        with self.assertRaises(NavigationError):
            self.page.find(".a").attribute("href")

    def test_playwright_errors_are_wrapped(self) -> None:
        self.locator.click.side_effect = PlaywrightError("element detached")
        self.raw_page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_RESET")
        self.raw_page.go_back.side_effect = PlaywrightError("closed")

        with self.assertRaises(NavigationError):
            self.page.find(".a").click()
        with self.assertRaises(NavigationError):
            self.page.navigate_to("https://news.example.test/")
        with self.assertRaises(NavigationError):
            self.page.go_back()

    def test_wait_until_ready_reports_timeout(self) -> None:
        self.raw_page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 500ms exceeded")

        self.assertFalse(self.page.wait_until_ready(".topicsTtl > a", 0.5))
        self.raw_page.wait_for_selector.assert_called_once_with(".topicsTtl > a", state="attached", timeout=500)

    def test_wait_until_ready_succeeds(self) -> None:
        self.assertTrue(self.page.wait_until_ready(".articleList", 1.0))

    def test_current_url_and_markup(self) -> None:
        self.raw_page.url = "https://news.example.test/topics/"
        self.raw_page.content.return_value = LISTING_HTML

        self.assertEqual(self.page.current_url(), "https://news.example.test/topics/")
        self.assertEqual(self.page.current_markup(), LISTING_HTML)


class BrowserSessionTestCase(unittest.TestCase):
    @patch("topic_crawler.navigation.sync_playwright")
    def test_launches_with_fixed_profile_and_closes(self, sync_playwright_mock: MagicMock) -> None:
        playwright = sync_playwright_mock.return_value.__enter__.return_value
        browser = playwright.chromium.launch.return_value
        context = browser.new_context.return_value

        with BrowserSession(BrowserConfig()) as page:
            self.assertIsInstance(page, PlaywrightPage)

        playwright.chromium.launch.assert_called_once_with(
            headless=True,
            args=BrowserConfig().launch_args(),
        )
        context.route.assert_called_once_with("**/*", _abort_images)
        context.close.assert_called_once()
        browser.close.assert_called_once()
        sync_playwright_mock.return_value.__exit__.assert_called_once()

    @patch("topic_crawler.navigation.sync_playwright")
    def test_launch_failure_raises_start_error(self, sync_playwright_mock: MagicMock) -> None:
        playwright = sync_playwright_mock.return_value.__enter__.return_value
        playwright.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")

        with self.assertRaises(BrowserStartError):
            with BrowserSession(BrowserConfig()):
                pass
        sync_playwright_mock.return_value.__exit__.assert_called_once()

    def test_image_requests_are_aborted(self) -> None:
        image_route = MagicMock()
        image_route.request.resource_type = "image"
        document_route = MagicMock()
        document_route.request.resource_type = "document"

        _abort_images(image_route)
        _abort_images(document_route)

        image_route.abort.assert_called_once()
        document_route.continue_.assert_called_once()
        document_route.abort.assert_not_called()


if __name__ == "__main__":
    unittest.main()
