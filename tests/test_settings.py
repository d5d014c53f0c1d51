# tests/test_settings.py

"""Tests for the Settings configuration class."""

import unittest
from pathlib import Path

from amazbot.config.settings import Settings


class TestSettings(unittest.TestCase):
    """Verify Settings constants."""

    def test_request_delay_is_positive_float(self) -> None:
        """REQUEST_DELAY must be a positive number."""
        self.assertIsInstance(Settings.REQUEST_DELAY, float)
        self.assertGreater(Settings.REQUEST_DELAY, 0)

    def test_request_timeout_is_positive_int(self) -> None:
        """REQUEST_TIMEOUT must be a positive integer."""
        self.assertIsInstance(Settings.REQUEST_TIMEOUT, int)
        self.assertGreater(Settings.REQUEST_TIMEOUT, 0)

    def test_captcha_depth_bound(self) -> None:
        """At most two captcha revalidations per fetch."""
        self.assertEqual(Settings.MAX_CAPTCHA_DEPTH, 2)

    def test_offer_page_bound(self) -> None:
        """Offer pagination stops after eleven pages."""
        self.assertEqual(Settings.MAX_OFFER_PAGES, 11)

    def test_dedup_ttl_is_six_hours(self) -> None:
        self.assertEqual(Settings.DEDUP_TTL, 6 * 60 * 60)

    def test_backoff_bounds_ordered(self) -> None:
        """Timeout backoff starts below its cap."""
        self.assertGreater(Settings.TIMEOUT_BACKOFF_BASE, 0)
        self.assertLessEqual(
            Settings.TIMEOUT_BACKOFF_BASE, Settings.TIMEOUT_BACKOFF_MAX,
        )

    def test_user_agents_not_empty(self) -> None:
        """At least one user agent is available for rotation."""
        self.assertGreater(len(Settings.USER_AGENTS), 0)
        for ua in Settings.USER_AGENTS:
            with self.subTest(ua=ua[:30]):
                self.assertTrue(ua.startswith("Mozilla/5.0"))

    def test_fingerprint_headers_have_no_user_agent(self) -> None:
        """The user agent is set per request, not in the fixed headers."""
        self.assertNotIn("User-Agent", Settings.FINGERPRINT_HEADERS)

    def test_paths_are_paths(self) -> None:
        for name in ("BASE_DIR", "DB_PATH", "DUMPS_DIR", "LOGS_DIR"):
            with self.subTest(name=name):
                self.assertIsInstance(getattr(Settings, name), Path)

    def test_bucket_names(self) -> None:
        self.assertEqual(Settings.SEARCH_BUCKET, "db")
        self.assertEqual(Settings.CONFIG_BUCKET, "config")


if __name__ == "__main__":
    unittest.main()
