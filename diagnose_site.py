#!/usr/bin/env python3
"""
Diagnostic tool to see what the audit sees on a single product page.
"""

import argparse
import asyncio
import sys
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from audit_config import AuditConfig
from catalog_crawler import PlaywrightBrowser, extract_image_urls
from label_audit import AuditLogger, classify_images, is_fire_label


async def diagnose_product(url: str, config: AuditConfig, logger: AuditLogger,
                           screenshot: bool = True) -> int:
    """Print the carousel images and classification of one product page."""
    async with PlaywrightBrowser(logger, headless=config.headless,
                                 navigation_timeout_ms=config.navigation_timeout_ms) as browser:
        session = await browser.new_session()

        print(f"\n{'='*60}")
        print(f"Diagnosing: {url}")
        print('='*60)

        try:
            print("\nNavigating to page...")
            await session.navigate(url)

            print(f"Waiting for carousel ({config.carousel_selector})...")
            try:
                await session.wait_for_selector(config.carousel_selector, config.carousel_timeout_ms)
                await asyncio.sleep(config.settle_seconds)
            except PlaywrightTimeoutError:
                print(f"  Carousel not found within {config.carousel_timeout_ms}ms")

            content = await session.content()
            soup = BeautifulSoup(content, 'lxml')
            print(f"\nPage title: {soup.title.string if soup.title else 'No title'}")
            print(f"Images on page: {len(soup.find_all('img'))}")

            images = extract_image_urls(content, session.url or url, config.carousel_selector)
            print(f"\nCarousel images: {len(images)}")
            for i, src in enumerate(images, 1):
                marker = "FIRE LABEL" if is_fire_label(src) else ""
                print(f"  {i}. {src[:100]} {marker}")

            label, reason, _ = classify_images(images)
            print(f"\nClassification: {label.value if label else 'OK (not flagged)'}")
            print(f"Reason: {reason}")

            if screenshot:
                screenshot_path = f"screenshot_{urlparse(url).netloc}.png"
                await session.screenshot(screenshot_path)
                print(f"\nScreenshot saved to: {screenshot_path}")

        except Exception as e:
            print(f"\nError: {e}")
            return 1
        finally:
            await session.close()

    return 0


def main():
    parser = argparse.ArgumentParser(description='Show carousel images and fire label classification for product pages')
    parser.add_argument('urls', nargs='+', metavar='URL', help='Product page URL(s)')
    parser.add_argument('--site-config', type=str, default=None, metavar='FILE',
                        help='JSON file with selector and timing overrides')
    parser.add_argument('--no-screenshot', action='store_true', help='Skip saving a screenshot')
    args = parser.parse_args()

    logger = AuditLogger("logs")
    config = AuditConfig.from_env()
    if args.site_config:
        config.load_site_config(args.site_config, logger)

    status = 0
    for url in args.urls:
        status |= asyncio.run(diagnose_product(url, config, logger, screenshot=not args.no_screenshot))
    return status


if __name__ == "__main__":
    sys.exit(main())
