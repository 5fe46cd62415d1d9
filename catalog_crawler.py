#!/usr/bin/env python3
"""
Playwright-based catalog crawler for JavaScript-rendered category pages.

This module provides the page-session abstraction used for every browser
interaction, plus the catalog crawl itself: pagination discovery, product
URL extraction and deduplication across all listing pages.
"""

import asyncio
import re
from typing import List, Optional
from urllib.parse import urljoin, urlparse
from playwright.async_api import async_playwright, Page, Browser
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from bs4 import BeautifulSoup

LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


def discover_page_count(html: str, pagination_selector: str = '.pagination') -> int:
    """Compute the number of catalog pages from the pagination UI.

    Args:
        html: Rendered category page HTML
        pagination_selector: CSS selector of the pagination container

    Returns:
        Highest numeric link label inside the container, or 1 when the
        container or numeric labels are absent
    """
    soup = BeautifulSoup(html, 'lxml')
    container = soup.select_one(pagination_selector)
    if container is None:
        return 1

    page_numbers = []
    for link in container.find_all('a'):
        match = LEADING_INT.match(link.get_text())
        if match:
            page_numbers.append(int(match.group(1)))

    return max(page_numbers) if page_numbers else 1


def extract_product_urls(html: str, page_url: str, path_marker: str = '/p/') -> List[str]:
    """Extract product detail URLs from a rendered listing page.

    Args:
        html: Rendered listing page HTML
        page_url: URL the HTML was loaded from, used to resolve relative links
        path_marker: Path fragment identifying product detail pages

    Returns:
        Absolute product URLs in document order (duplicates kept)
    """
    soup = BeautifulSoup(html, 'lxml')
    urls = []
    for link in soup.find_all('a', href=True):
        full_url = urljoin(page_url, link['href'])
        if path_marker in full_url:
            urls.append(full_url)
    return urls


def extract_image_urls(html: str, page_url: str, carousel_selector: str = 'div.scrollable img') -> List[str]:
    """Extract image sources from a product page's carousel, in document order.

    Every matched image counts, so one without a src attribute (a lazy
    slide not yet loaded) is kept as an empty string, like img.src.
    """
    soup = BeautifulSoup(html, 'lxml')
    images = []
    for img in soup.select(carousel_selector):
        src = img.get('src')
        images.append(urljoin(page_url, src) if src is not None else '')
    return images


def build_page_url(base_url: str, offset: int, offset_param: str = 'start') -> str:
    """Append the listing offset to the category URL (omitted for offset 0).

    The existing query string is kept byte for byte.
    """
    if offset <= 0:
        return base_url

    separator = '&' if urlparse(base_url).query else ('' if base_url.endswith('?') else '?')
    return f"{base_url}{separator}{offset_param}={offset}"


def dedupe_preserving_order(urls: List[str]) -> List[str]:
    """Drop repeated URLs, keeping the first occurrence of each."""
    return list(dict.fromkeys(urls))


class PageSession:
    """One browser page, exposing only what the audit needs."""

    def __init__(self, page: Page, logger, navigation_timeout_ms: int = 30000):
        self.page = page
        self.logger = logger
        self.navigation_timeout_ms = navigation_timeout_ms

    async def navigate(self, url: str) -> None:
        """Load a URL and wait for the network to go quiet.

        Network quiescence is a best-effort policy: when the navigation
        timeout elapses first, the page is used as rendered so far.
        """
        try:
            await self.page.goto(url, wait_until='networkidle',
                                 timeout=self.navigation_timeout_ms)
        except PlaywrightTimeoutError:
            self.logger.debug(
                f"Network did not settle within {self.navigation_timeout_ms}ms: {url[:100]}"
            )

    @property
    def url(self) -> str:
        """Address of the loaded document, after any redirects."""
        return self.page.url

    async def content(self) -> str:
        return await self.page.content()

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> None:
        # Present in the DOM is enough; hidden carousel slides still count
        await self.page.wait_for_selector(selector, state='attached', timeout=timeout_ms)

    async def scroll_to_bottom(self) -> None:
        # Forces lazy-loaded product tiles to render
        await self.page.evaluate("window.scrollTo(0, document.body.scrollHeight)")

    async def screenshot(self, path: str) -> None:
        await self.page.screenshot(path=path)

    async def close(self) -> None:
        await self.page.close()


class PlaywrightBrowser:
    """Headless browser shared by the crawl and audit phases."""

    def __init__(self, logger, headless: bool = True, navigation_timeout_ms: int = 30000):
        """Initialize Playwright browser wrapper.

        Args:
            logger: Logger instance for progress and error reporting
            headless: Launch Chromium without a visible window
            navigation_timeout_ms: Upper bound for each network-quiescence wait
        """
        self.logger = logger
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.browser: Optional[Browser] = None
        self.playwright = None

    async def __aenter__(self):
        """Start Playwright and browser."""
        self.playwright = await async_playwright().start()
        try:
            self.browser = await self.playwright.chromium.launch(
                headless=self.headless,
                args=[
                    '--disable-dev-shm-usage',
                    '--no-sandbox',
                    '--disable-setuid-sandbox',
                ]
            )
        except Exception:
            await self.playwright.stop()
            raise
        self.logger.debug(f"Launched Chromium (headless={self.headless})")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close browser and Playwright."""
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()

    async def new_session(self) -> PageSession:
        page = await self.browser.new_page(viewport={'width': 1920, 'height': 1080})
        return PageSession(page, self.logger, self.navigation_timeout_ms)


class CatalogCrawler:
    """Walks every page of a category listing and collects product URLs."""

    def __init__(self, browser, logger, config):
        """Initialize catalog crawler.

        Args:
            browser: Object with an async new_session() returning a PageSession
            logger: Logger instance for progress and error reporting
            config: AuditConfig with selectors, page size and settle interval
        """
        self.browser = browser
        self.logger = logger
        self.config = config

    async def collect_product_urls(self, base_category_url: str) -> List[str]:
        """Collect the deduplicated product URLs of a category.

        Args:
            base_category_url: First page of the category listing

        Returns:
            Product URLs in order of first discovery, without duplicates
        """
        session = await self.browser.new_session()
        all_product_urls = []

        try:
            self.logger.info(f"Navigating to category landing page: {base_category_url}")
            await session.navigate(base_category_url)
            await asyncio.sleep(self.config.settle_seconds)

            html = await session.content()
            max_pages = discover_page_count(html, self.config.pagination_selector)
            if max_pages < 1:
                self.logger.debug(f"Pagination reported {max_pages} pages, using 1")
                max_pages = 1
            self.logger.info(f"Detected {max_pages} pages in the category.")

            for current_page in range(max_pages):
                offset = current_page * self.config.page_size
                page_url = build_page_url(base_category_url, offset, self.config.offset_param)
                self.logger.info(f"Navigating to category page: {page_url}")

                try:
                    await session.navigate(page_url)
                    await session.scroll_to_bottom()
                    await asyncio.sleep(self.config.settle_seconds)
                    html = await session.content()
                    document_url = session.url or page_url
                except Exception as e:
                    self.logger.log_error(page_url, "CategoryPageError",
                                          f"Error loading category page: {str(e)}")
                    continue

                product_urls = extract_product_urls(html, document_url, self.config.product_path_marker)
                self.logger.info(f"Page {current_page + 1}: Found {len(product_urls)} products.")
                all_product_urls.extend(product_urls)

        finally:
            await session.close()

        unique_urls = dedupe_preserving_order(all_product_urls)
        self.logger.info(f"Total products collected: {len(unique_urls)}")
        if len(unique_urls) < len(all_product_urls):
            self.logger.debug(f"Removed {len(all_product_urls) - len(unique_urls)} duplicate product URLs")
        return unique_urls
