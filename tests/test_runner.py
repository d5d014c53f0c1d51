# tests/test_runner.py

"""Tests for the headless CLI commands."""

import asyncio
import unittest
from unittest.mock import MagicMock, patch

from amazbot.cli.runner import run_bot_mode, run_check, run_health_check
from amazbot.errors import TransportError
from amazbot.models.extraction import Extraction
from amazbot.models.prices import PriceVector
from amazbot.services.health_checker import HealthResult

_RUNNER = "amazbot.cli.runner"


@patch(f"{_RUNNER}.CaptchaSolver")
@patch(f"{_RUNNER}.AmazonScraper")
@patch(f"{_RUNNER}.DocumentFetcher")
@patch(f"{_RUNNER}.SessionTransport")
class TestRunCheck(unittest.TestCase):

    def test_prices_found(
        self, mock_transport, mock_fetcher, mock_scraper, mock_solver,
    ) -> None:
        """A product with offers exits 0 and closes the transport."""
        mock_scraper.return_value.scrape.return_value = Extraction(
            item_id="B08N5WRWNW",
            domain="es",
            title="Auriculares",
            link="https://www.amazon.es/dp/B08N5WRWNW",
            prices=PriceVector([244.49, 0, 189.9, 0, 0]),
        )
        self.assertEqual(run_check("b08n5wrwnw.es", "http://solver"), 0)
        mock_fetcher.return_value.ensure_session.assert_called_once_with("es")
        mock_scraper.return_value.scrape.assert_called_once_with(
            "B08N5WRWNW", "es",
        )
        mock_transport.return_value.close.assert_called_once()

    def test_no_prices(
        self, mock_transport, mock_fetcher, mock_scraper, mock_solver,
    ) -> None:
        mock_scraper.return_value.scrape.return_value = Extraction(
            item_id="B08N5WRWNW", domain="es", title="", link="",
        )
        self.assertEqual(run_check("B08N5WRWNW.es", "http://solver"), 1)

    def test_scrape_error(
        self, mock_transport, mock_fetcher, mock_scraper, mock_solver,
    ) -> None:
        """Fetch failures exit 1 and still close the transport."""
        mock_fetcher.return_value.ensure_session.side_effect = TransportError(
            "blocked"
        )
        self.assertEqual(run_check("B08N5WRWNW.es", "http://solver"), 1)
        mock_transport.return_value.close.assert_called_once()

    def test_invalid_key(
        self, mock_transport, mock_fetcher, mock_scraper, mock_solver,
    ) -> None:
        self.assertEqual(run_check("B08N5WRWNW.zz", "http://solver"), 1)
        mock_transport.assert_not_called()


class TestRunHealthCheck(unittest.TestCase):

    @patch("amazbot.services.health_checker.HealthChecker.check_all")
    @patch(f"{_RUNNER}.CaptchaSolver")
    def test_down_source_fails(self, mock_solver, mock_check_all) -> None:
        mock_check_all.return_value = [
            HealthResult("amazon.es", "ok", 120.0, ""),
            HealthResult("amazon.de", "down", 0.0, "HTTP 503"),
        ]
        self.assertEqual(asyncio.run(run_health_check("http://solver")), 1)

    @patch("amazbot.services.health_checker.HealthChecker.check_all")
    @patch(f"{_RUNNER}.CaptchaSolver")
    def test_warnings_pass(self, mock_solver, mock_check_all) -> None:
        """Slow or captcha answers are warnings, not failures."""
        mock_check_all.return_value = [
            HealthResult("amazon.es", "slow", 6000.0, "High latency"),
            HealthResult("amazon.fr", "captcha", 300.0, "Captcha requested"),
        ]
        self.assertEqual(asyncio.run(run_health_check("http://solver")), 0)


class TestRunBotMode(unittest.TestCase):

    def test_missing_token(self) -> None:
        self.assertEqual(run_bot_mode("", "http://solver"), 1)

    @patch("amazbot.services.bot.run_bot", new_callable=MagicMock)
    def test_runs_until_stopped(self, mock_run_bot) -> None:
        async def _noop() -> None:
            return None

        mock_run_bot.return_value = _noop()
        self.assertEqual(
            run_bot_mode("123:abc", "http://solver", admin_id=42), 0,
        )
        self.assertEqual(mock_run_bot.call_args.kwargs["admin_id"], 42)


if __name__ == "__main__":
    unittest.main()
