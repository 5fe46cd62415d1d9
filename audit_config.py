#!/usr/bin/env python3
"""
Run configuration for the fire label audit.

Values come from the environment once at startup, can be overridden from
the command line, and site-specific selectors and timings can be loaded
from a JSON file.
"""

import json
import os
from pathlib import Path
from typing import Dict, Optional

DEFAULT_CATEGORY_URL = 'https://example.com/category'
DEFAULT_SENDER = 'your_email@example.com'

# Keys a site config JSON file may override, with the type each must have
SITE_CONFIG_KEYS = {
    'pagination_selector': str,
    'product_path_marker': str,
    'carousel_selector': str,
    'offset_param': str,
    'page_size': int,
    'settle_seconds': float,
    'carousel_timeout_ms': int,
    'navigation_timeout_ms': int,
}


def parse_headless(value: Optional[str]) -> bool:
    """Interpret HEADLESS_MODE: unset means headless, otherwise only 'yes' does."""
    if value is None or value == '':
        return True
    return value.strip().lower() == 'yes'


class AuditConfig:
    """Tunable parameters for one audit run.

    The page size, offset parameter and selectors describe one particular
    storefront and are expected to change per site.
    """

    def __init__(self,
                 category_url: str = DEFAULT_CATEGORY_URL,
                 headless: bool = True,
                 report_dir: str = 'fire_label_report',
                 log_dir: str = 'logs',
                 page_size: int = 32,
                 offset_param: str = 'start',
                 settle_seconds: float = 2.0,
                 carousel_timeout_ms: int = 10000,
                 navigation_timeout_ms: int = 30000,
                 pagination_selector: str = '.pagination',
                 product_path_marker: str = '/p/',
                 carousel_selector: str = 'div.scrollable img',
                 sendgrid_api_key: Optional[str] = None,
                 recipient: Optional[str] = None,
                 sender: str = DEFAULT_SENDER):
        self.category_url = category_url
        self.headless = headless
        self.report_dir = report_dir
        self.log_dir = log_dir
        self.page_size = page_size
        self.offset_param = offset_param
        self.settle_seconds = settle_seconds
        self.carousel_timeout_ms = carousel_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self.pagination_selector = pagination_selector
        self.product_path_marker = product_path_marker
        self.carousel_selector = carousel_selector
        self.sendgrid_api_key = sendgrid_api_key
        self.recipient = recipient
        self.sender = sender

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'AuditConfig':
        """Build a config from process environment variables.

        Args:
            environ: Mapping to read instead of os.environ (for tests)

        Returns:
            AuditConfig with environment values applied over the defaults
        """
        env = os.environ if environ is None else environ
        return cls(
            category_url=env.get('CATEGORY_URL') or DEFAULT_CATEGORY_URL,
            headless=parse_headless(env.get('HEADLESS_MODE')),
            report_dir=env.get('REPORT_DIR') or 'fire_label_report',
            sendgrid_api_key=env.get('SENDGRID_API_KEY') or None,
            recipient=env.get('REPORT_RECIPIENT') or None,
            sender=env.get('REPORT_SENDER') or DEFAULT_SENDER,
        )

    def load_site_config(self, config_file: str, logger=None) -> bool:
        """Apply selector and timing overrides from a JSON file.

        Args:
            config_file: Path to JSON configuration file
            logger: Logger instance for warnings

        Returns:
            True if config loaded successfully, False otherwise
        """
        config_path = Path(config_file)
        if not config_path.exists():
            if logger:
                logger.warning(f"Site config file not found: {config_file}, using defaults")
            return False

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                overrides = json.load(f)
        except json.JSONDecodeError as e:
            if logger:
                logger.warning(f"Invalid JSON in site config file: {e}")
            return False

        if not isinstance(overrides, dict):
            if logger:
                logger.warning(f"Site config must be a JSON object: {config_file}")
            return False

        # Remove schema/comment keys
        overrides = {k: v for k, v in overrides.items() if not k.startswith('_')}

        for key, value in overrides.items():
            expected_type = SITE_CONFIG_KEYS.get(key)
            if expected_type is None:
                if logger:
                    logger.warning(f"Ignoring unknown site config key: {key}")
                continue
            try:
                setattr(self, key, expected_type(value))
            except (TypeError, ValueError):
                if logger:
                    logger.warning(f"Ignoring invalid value for {key}: {value!r}")

        if logger:
            logger.info(f"Loaded site configuration from {config_path}")
        return True
