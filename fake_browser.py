#!/usr/bin/env python3
"""
In-memory stand-ins for the Playwright browser, used by the tests.

Pages are described by a dict of URL -> HTML string. A value that is an
exception instance is raised from navigate() instead. URLs listed in
``slow_carousel`` raise a Playwright timeout from wait_for_selector().
``redirects`` maps a requested URL to the URL the document ends up at, and
the first ``failing_sessions`` calls to new_session() raise.
"""

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from bs4 import BeautifulSoup


class FakeSession:
    def __init__(self, browser):
        self.browser = browser
        self.current_url = None
        self.navigated = []
        self.scrolled = 0
        self.closed = False

    async def navigate(self, url):
        self.navigated.append(url)
        self.browser.navigation_log.append(url)
        page = self.browser.pages.get(url, "<html><body></body></html>")
        if isinstance(page, Exception):
            raise page
        self.current_url = self.browser.redirects.get(url, url)

    @property
    def url(self):
        return self.current_url or "about:blank"

    async def content(self):
        return self.browser.pages.get(self.current_url, "<html><body></body></html>")

    async def wait_for_selector(self, selector, timeout_ms):
        if self.current_url in self.browser.slow_carousel:
            raise PlaywrightTimeoutError(f"Timeout {timeout_ms}ms exceeded waiting for {selector}")
        soup = BeautifulSoup(await self.content(), 'lxml')
        if not soup.select(selector):
            raise PlaywrightTimeoutError(f"Timeout {timeout_ms}ms exceeded waiting for {selector}")

    async def scroll_to_bottom(self):
        self.scrolled += 1

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, pages, slow_carousel=(), redirects=None, failing_sessions=0):
        self.pages = pages
        self.slow_carousel = set(slow_carousel)
        self.redirects = redirects or {}
        self.failing_sessions = failing_sessions
        self.sessions = []
        self.navigation_log = []
        self.closed = False

    async def new_session(self):
        if self.failing_sessions > 0:
            self.failing_sessions -= 1
            raise RuntimeError("Target page, context or browser has been closed")
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed = True


def listing_html(product_paths, max_page=None):
    """Category page HTML with product links and an optional pagination bar."""
    links = "\n".join(f'<a href="{path}">Product</a>' for path in product_paths)
    pagination = ""
    if max_page is not None:
        numbers = "".join(f'<a href="#">{n}</a>' for n in range(1, max_page + 1))
        pagination = f'<div class="pagination">{numbers}<a href="#">Next</a></div>'
    return f"<html><body><a href=\"/help\">Help</a>{links}{pagination}</body></html>"


def product_html(image_urls):
    """Product page HTML with a scrollable image carousel."""
    if not image_urls:
        return "<html><body><div class=\"details\">No carousel</div></body></html>"
    imgs = "".join(f'<img src="{src}">' for src in image_urls)
    return f'<html><body><div class="scrollable">{imgs}</div></body></html>'
