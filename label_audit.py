#!/usr/bin/env python3
"""
Fire Label Audit

Crawls a paginated product category, opens every product page, checks the
image carousel for the regulatory fire label image, and writes a dated CSV
report of products with image issues. An e-mail summary is sent when any
product is flagged.
"""

import argparse
import asyncio
import csv
import logging
import re
import sys
from collections import defaultdict
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, NamedTuple, Optional, Tuple

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from audit_config import AuditConfig
from catalog_crawler import CatalogCrawler, PlaywrightBrowser, extract_image_urls
from email_notifier import EmailNotifier, build_summary


# ============================================================================
# Logging
# ============================================================================

class AuditLogger:
    """Centralized logging for the audit run."""

    def __init__(self, log_dir: str = "logs"):
        """Initialize logger with separate error and activity logs.

        Args:
            log_dir: Directory to store log files
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger("FireLabelAudit")
        self.logger.setLevel(logging.DEBUG)

        # A second AuditLogger in the same process replaces the first one's handlers
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        # Console handler for user-facing messages
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter('%(message)s'))

        # File handler for detailed logs
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_handler = logging.FileHandler(
            self.log_dir / f"audit_{timestamp}.log", encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

        self.logger.addHandler(console_handler)
        self.logger.addHandler(file_handler)

        # Error log CSV
        self.error_log_path = self.log_dir / f"errors_{timestamp}.csv"
        self._init_error_log()

    def _init_error_log(self):
        with open(self.error_log_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(['timestamp', 'url', 'error_type', 'error_message'])

    def log_error(self, url: str, error_type: str, error_message: str):
        """Log an error to both console and CSV file.

        Args:
            url: URL being processed when the error happened
            error_type: Type of error (e.g., 'ProductPageError', 'NotificationError')
            error_message: Detailed error message
        """
        self.logger.error(f"Error processing {url}: {error_type} - {error_message}")

        with open(self.error_log_path, 'a', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow([datetime.now().isoformat(), url, error_type, error_message])

    def info(self, message: str):
        self.logger.info(message)

    def debug(self, message: str):
        self.logger.debug(message)

    def warning(self, message: str):
        self.logger.warning(message)


# ============================================================================
# Image Classification
# ============================================================================

class ClassificationLabel(Enum):
    """Image issues a product can be flagged for. Values are report text."""

    MISSING_IMAGE = "Missing Image"
    MISSING_FIRE_LABEL = "Missing Fire Label"
    MULTIPLE_FIRE_LABELS = "Multiple Fire Labels"
    SINGLE_FIRE_LABEL_FOUND = "Single Fire Label Found"


class FlaggedProduct(NamedTuple):
    url: str
    label: ClassificationLabel


COMING_SOON_MARKER = 'image-coming-soon.svg'

# Fire label images end in _50.._59 or _70.._99 before the .jpg extension
FIRE_LABEL_PATTERN = re.compile(r'_(5[0-9]|[7-9][0-9])\.jpg(\?.*)?$')


def is_fire_label(image_url: str) -> bool:
    return FIRE_LABEL_PATTERN.search(image_url) is not None


def classify_images(images: List[str]) -> Tuple[Optional[ClassificationLabel], str, List[str]]:
    """Classify a product's carousel images.

    The checks run in a fixed order; the first that applies decides the
    label. A single fire label among other images is the healthy case and
    is not flagged.

    Args:
        images: Carousel image URLs in page order

    Returns:
        Tuple of (label or None, human readable reason, valid fire label URLs)
    """
    if not images:
        return (ClassificationLabel.MISSING_IMAGE,
                "No images found on the product page. Reporting as Missing Image.", [])

    if any(COMING_SOON_MARKER in src for src in images):
        return (ClassificationLabel.MISSING_IMAGE,
                'Found "coming soon" icon. Reporting as Missing Image.', [])

    valid_fire_labels = [src for src in images if is_fire_label(src)]

    if not valid_fire_labels:
        return (ClassificationLabel.MISSING_FIRE_LABEL,
                "No valid fire label image found. Reporting as Missing Fire Label.",
                valid_fire_labels)

    if len(valid_fire_labels) > 1:
        return (ClassificationLabel.MULTIPLE_FIRE_LABELS,
                "Multiple valid fire label images found. Reporting as Multiple Fire Labels.",
                valid_fire_labels)

    if len(images) == 1:
        return (ClassificationLabel.SINGLE_FIRE_LABEL_FOUND,
                "Only image is the fire label. Reporting as Single Fire Label Found.",
                valid_fire_labels)

    return None, "Valid fire label image found.", valid_fire_labels


def classify(images: List[str]) -> Optional[ClassificationLabel]:
    """Label for a product's carousel images, or None when it needs no attention."""
    label, _, _ = classify_images(images)
    return label


# ============================================================================
# Product Auditing
# ============================================================================

class ProductAuditor:
    """Visits product pages one at a time and collects flagged products."""

    def __init__(self, browser, logger: AuditLogger, config: AuditConfig):
        """Initialize the auditor.

        Args:
            browser: Object with an async new_session() returning a PageSession
            logger: Logger instance
            config: AuditConfig with carousel selector and timings
        """
        self.browser = browser
        self.logger = logger
        self.config = config

        self.stats = {
            'products_checked': 0,
            'products_flagged': 0,
            'errors_encountered': 0,
        }
        self.label_counts = defaultdict(int)

    async def audit(self, urls: List[str]) -> List[FlaggedProduct]:
        """Audit every product URL in order.

        Args:
            urls: Deduplicated product URLs

        Returns:
            Flagged products in audit order
        """
        flagged = []
        for idx, url in enumerate(urls, 1):
            self.logger.info(f"\n[{idx}/{len(urls)}] Checking product: {url}")
            result = await self.audit_product(url)
            if result:
                flagged.append(result)
        return flagged

    async def audit_product(self, url: str) -> Optional[FlaggedProduct]:
        """Audit a single product page.

        Args:
            url: Product detail page URL

        Returns:
            FlaggedProduct if the page has an image issue, None otherwise
        """
        images = await self._collect_images(url)
        self.logger.info(f"Carousel images for {url}: {images}")

        label, reason, valid_fire_labels = classify_images(images)
        if valid_fire_labels:
            self.logger.info(f"Valid fire label images for {url}: {valid_fire_labels}")
        self.logger.info(reason)

        self.stats['products_checked'] += 1
        if label is None:
            return None

        self.stats['products_flagged'] += 1
        self.label_counts[label] += 1
        return FlaggedProduct(url, label)

    async def _collect_images(self, url: str) -> List[str]:
        """Open the product page and read its carousel images.

        Any failure yields an empty list, which classifies as Missing Image.
        """
        images = []
        session = None

        try:
            session = await self.browser.new_session()
            await session.navigate(url)
            try:
                await session.wait_for_selector(self.config.carousel_selector,
                                                self.config.carousel_timeout_ms)
            except (PlaywrightTimeoutError, asyncio.TimeoutError):
                self.logger.info(f"Scrollable images not found on product page: {url}")
                return images

            await asyncio.sleep(self.config.settle_seconds)
            html = await session.content()
            images = extract_image_urls(html, session.url or url, self.config.carousel_selector)

        except Exception as e:
            self.logger.log_error(url, "ProductPageError", f"Error reading product page: {str(e)}")
            self.stats['errors_encountered'] += 1
            images = []

        finally:
            if session is not None:
                try:
                    await session.close()
                except Exception as e:
                    self.logger.debug(f"Error closing page for {url}: {str(e)}")

        return images


# ============================================================================
# Report Output
# ============================================================================

REPORT_HEADER = 'Product URL,Missing Type'


class ReportWriter:
    """Writes flagged products to a dated CSV file."""

    def __init__(self, report_dir: str = "fire_label_report", logger: Optional[AuditLogger] = None):
        self.report_dir = Path(report_dir)
        self.logger = logger

    def report_path(self, now: Optional[datetime] = None) -> Path:
        """Path of the report for the given day (defaults to today, UTC)."""
        if now is None:
            now = datetime.now(timezone.utc)
        return self.report_dir / f"missing_fire_labels_{now.strftime('%Y-%m-%d')}.csv"

    def write(self, flagged: List[FlaggedProduct], now: Optional[datetime] = None) -> Path:
        """Write the report, replacing any earlier report from the same day.

        Args:
            flagged: Flagged products in audit order
            now: Report date (defaults to the current UTC time)

        Returns:
            Path of the written report
        """
        self.report_dir.mkdir(parents=True, exist_ok=True)
        path = self.report_path(now)

        with open(path, 'w', newline='', encoding='utf-8') as f:
            f.write(REPORT_HEADER + '\n')
            writer = csv.writer(f, quoting=csv.QUOTE_ALL, lineterminator='\n')
            for product in flagged:
                writer.writerow([product.url, product.label.value])

        if self.logger:
            self.logger.info(f'CSV file "{path}" has been created with {len(flagged)} entries')
            for product in flagged:
                self.logger.debug(f"  {product.label.value}: {product.url}")
        return path


# ============================================================================
# Main Audit Orchestrator
# ============================================================================

class FireLabelAuditor:
    """Runs crawl, audit, report and notification in sequence."""

    def __init__(self, config: AuditConfig, logger: Optional[AuditLogger] = None,
                 browser_factory=None, notifier: Optional[EmailNotifier] = None):
        """Initialize the audit run.

        Args:
            config: Run configuration
            logger: Logger instance (created from config.log_dir if omitted)
            browser_factory: Callable returning an async context manager that
                yields a browser; defaults to a Playwright Chromium browser
            notifier: Notifier instance (SendGrid notifier from config if omitted)
        """
        self.config = config
        self.logger = logger or AuditLogger(config.log_dir)
        self.browser_factory = browser_factory or self._default_browser
        self.notifier = notifier or EmailNotifier(config.sendgrid_api_key, config.sender, self.logger)
        self.report_writer = ReportWriter(config.report_dir, self.logger)

        self.stats = {
            'products_found': 0,
            'products_checked': 0,
            'products_flagged': 0,
            'errors_encountered': 0,
            'notification_sent': False,
        }
        self.label_counts = {}
        self.report_path: Optional[Path] = None

    def _default_browser(self):
        return PlaywrightBrowser(self.logger, headless=self.config.headless,
                                 navigation_timeout_ms=self.config.navigation_timeout_ms)

    async def run(self) -> List[FlaggedProduct]:
        """Execute the audit.

        Browser launch, category load and report write failures propagate.

        Returns:
            Flagged products
        """
        self.logger.info("=" * 60)
        self.logger.info("Fire Label Audit")
        self.logger.info("=" * 60)

        async with self.browser_factory() as browser:
            crawler = CatalogCrawler(browser, self.logger, self.config)
            product_urls = await crawler.collect_product_urls(self.config.category_url)
            self.stats['products_found'] = len(product_urls)

            auditor = ProductAuditor(browser, self.logger, self.config)
            flagged = await auditor.audit(product_urls)

        self.stats['products_checked'] = auditor.stats['products_checked']
        self.stats['products_flagged'] = auditor.stats['products_flagged']
        self.stats['errors_encountered'] = auditor.stats['errors_encountered']
        self.label_counts = dict(auditor.label_counts)

        self.report_path = self.report_writer.write(flagged)

        if flagged:
            self.stats['notification_sent'] = await self.notifier.notify(
                len(flagged), build_summary(len(flagged)), self.config.recipient,
                attachment_path=self.report_path
            )

        self._print_summary()
        return flagged

    def _print_summary(self):
        self.logger.info("\n" + "=" * 60)
        self.logger.info("AUDIT COMPLETE")
        self.logger.info("=" * 60)
        self.logger.info(f"Products found: {self.stats['products_found']}")
        self.logger.info(f"Products checked: {self.stats['products_checked']}")
        self.logger.info(f"Products flagged: {self.stats['products_flagged']}")
        for label in ClassificationLabel:
            count = self.label_counts.get(label, 0)
            if count:
                self.logger.info(f"  {label.value}: {count}")
        self.logger.info(f"Errors encountered: {self.stats['errors_encountered']}")
        self.logger.info(f"Notification sent: {'yes' if self.stats['notification_sent'] else 'no'}")
        self.logger.info(f"\nReport: {self.report_path}")
        self.logger.info(f"Error log: {self.logger.error_log_path}")


# ============================================================================
# Main Entry Point
# ============================================================================

def build_config(args: argparse.Namespace, logger: Optional[AuditLogger] = None) -> AuditConfig:
    """Combine environment settings with command-line overrides."""
    config = AuditConfig.from_env()
    config.log_dir = args.log_dir

    if args.site_config:
        config.load_site_config(args.site_config, logger)

    if args.category_url:
        config.category_url = args.category_url
    if args.headful:
        config.headless = False
    if args.report_dir:
        config.report_dir = args.report_dir
    if args.page_size is not None:
        config.page_size = args.page_size
    if args.offset_param:
        config.offset_param = args.offset_param
    if args.settle_seconds is not None:
        config.settle_seconds = args.settle_seconds
    if args.carousel_timeout is not None:
        config.carousel_timeout_ms = args.carousel_timeout
    if args.recipient:
        config.recipient = args.recipient
    return config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Fire Label Audit - report products missing their fire label image',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Environment:
  CATEGORY_URL       Category page to audit
  HEADLESS_MODE      "yes" for headless (default when unset), anything else shows the browser
  SENDGRID_API_KEY   SendGrid API key for the e-mail summary
  REPORT_RECIPIENT   Address that receives the e-mail summary
  REPORT_SENDER      Verified SendGrid sender address
  REPORT_DIR         Directory for the CSV report (default: fire_label_report/)

Examples:
  # Audit the category from CATEGORY_URL
  python label_audit.py

  # Audit a specific category with a visible browser
  python label_audit.py --category-url "https://shop.example.com/c/bedding?sort=new" --headful

  # Use site-specific selectors
  python label_audit.py --site-config site_config.json
        '''
    )

    parser.add_argument('--category-url', type=str, default=None, metavar='URL',
                        help='Category page to audit (default: $CATEGORY_URL)')
    parser.add_argument('--headful', action='store_true',
                        help='Show the browser window')
    parser.add_argument('--report-dir', type=str, default=None, metavar='DIR',
                        help='Report directory (default: $REPORT_DIR or fire_label_report/)')
    parser.add_argument('--log-dir', type=str, default='logs', metavar='DIR',
                        help='Log directory (default: logs/)')
    parser.add_argument('--page-size', type=int, default=None, metavar='N',
                        help='Products per category page (default: 32)')
    parser.add_argument('--offset-param', type=str, default=None, metavar='NAME',
                        help='Query parameter carrying the listing offset (default: start)')
    parser.add_argument('--settle-seconds', type=float, default=None, metavar='S',
                        help='Pause after page loads for lazy content (default: 2.0)')
    parser.add_argument('--carousel-timeout', type=int, default=None, metavar='MS',
                        help='Wait for the product image carousel in ms (default: 10000)')
    parser.add_argument('--recipient', type=str, default=None, metavar='EMAIL',
                        help='E-mail summary recipient (default: $REPORT_RECIPIENT)')
    parser.add_argument('--site-config', type=str, default=None, metavar='FILE',
                        help='JSON file with selector and timing overrides')

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logger = AuditLogger(args.log_dir)
    config = build_config(args, logger)

    auditor = FireLabelAuditor(config, logger=logger)
    asyncio.run(auditor.run())
    return 0


if __name__ == "__main__":
    sys.exit(main())
