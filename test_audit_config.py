#!/usr/bin/env python3
"""
Tests for environment, command-line and site config handling.
"""

import json
import sys
import tempfile
from pathlib import Path

from audit_config import DEFAULT_CATEGORY_URL, AuditConfig, parse_headless
from label_audit import AuditLogger, build_config, parse_args

logger = AuditLogger("test_logs")


def test_headless_flag():
    assert parse_headless(None) is True
    assert parse_headless("") is True
    assert parse_headless("yes") is True
    assert parse_headless("YES") is True
    assert parse_headless("no") is False
    assert parse_headless("true") is False


def test_from_env_defaults():
    config = AuditConfig.from_env({})
    assert config.category_url == DEFAULT_CATEGORY_URL
    assert config.headless is True
    assert config.sendgrid_api_key is None
    assert config.recipient is None
    assert config.page_size == 32
    assert config.offset_param == "start"
    assert config.settle_seconds == 2.0
    assert config.carousel_timeout_ms == 10000
    assert config.report_dir == "fire_label_report"


def test_from_env_values():
    config = AuditConfig.from_env({
        'CATEGORY_URL': 'https://shop.example.com/c/bedding',
        'HEADLESS_MODE': 'no',
        'SENDGRID_API_KEY': 'SG.key',
        'REPORT_RECIPIENT': 'buyer@example.com',
        'REPORT_SENDER': 'audit@example.com',
        'REPORT_DIR': 'reports',
    })
    assert config.category_url == 'https://shop.example.com/c/bedding'
    assert config.headless is False
    assert config.sendgrid_api_key == 'SG.key'
    assert config.recipient == 'buyer@example.com'
    assert config.sender == 'audit@example.com'
    assert config.report_dir == 'reports'


def test_site_config_overrides():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "site_config.json"
        path.write_text(json.dumps({
            "_comment": "storefront with 48 tiles per page",
            "page_size": 48,
            "offset_param": "offset",
            "carousel_selector": ".gallery img",
            "settle_seconds": "0.5",
            "carousel_timeout_ms": "not a number",
            "colour_scheme": "dark",
        }), encoding='utf-8')

        config = AuditConfig()
        assert config.load_site_config(str(path), logger) is True

    assert config.page_size == 48
    assert config.offset_param == "offset"
    assert config.carousel_selector == ".gallery img"
    assert config.settle_seconds == 0.5
    assert config.carousel_timeout_ms == 10000
    assert not hasattr(config, "colour_scheme")


def test_site_config_missing_or_invalid():
    config = AuditConfig()
    assert config.load_site_config("/nonexistent/site_config.json", logger) is False

    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "broken.json"
        path.write_text("{not json", encoding='utf-8')
        assert config.load_site_config(str(path), logger) is False

        path.write_text("[1, 2]", encoding='utf-8')
        assert config.load_site_config(str(path), logger) is False

    assert config.page_size == 32


def test_command_line_overrides():
    args = parse_args([
        '--category-url', 'https://shop.example.com/c/rugs',
        '--headful',
        '--page-size', '24',
        '--settle-seconds', '0',
        '--carousel-timeout', '5000',
        '--recipient', 'qa@example.com',
    ])
    config = build_config(args, logger)
    assert config.category_url == 'https://shop.example.com/c/rugs'
    assert config.headless is False
    assert config.page_size == 24
    assert config.settle_seconds == 0
    assert config.carousel_timeout_ms == 5000
    assert config.recipient == 'qa@example.com'


def main():
    """Run all tests."""
    print("=" * 60)
    print("Audit Config Tests")
    print("=" * 60)

    tests = [obj for name, obj in sorted(globals().items())
             if name.startswith("test_") and callable(obj)]
    try:
        for test in tests:
            test()
            print(f"✓ {test.__name__}")
    except AssertionError as e:
        print(f"\n✗ Test failed: {e}")
        return 1

    print("\nALL TESTS PASSED! ✓")
    return 0


if __name__ == "__main__":
    sys.exit(main())
