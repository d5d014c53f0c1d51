# amazbot/services/tracker.py

"""Runs one price check for a search key under the retry policy."""

import logging
import threading

from amazbot.config.settings import Settings
from amazbot.errors import NetworkTimeoutError, RetriableError
from amazbot.models.extraction import Extraction
from amazbot.models.item import Item
from amazbot.models.search_key import SearchKey
from amazbot.scrapers.amazon_scraper import AmazonScraper
from amazbot.scrapers.fetcher import DocumentFetcher
from amazbot.services.price_policy import PriceDecision, decide

logger = logging.getLogger("amazbot.tracker")


class PriceTracker:
    """Scrapes a key's product and feeds the result to the policy.

    Retry policy:

    * timeouts are retried until they succeed or *stop* is set, waiting
      with exponential backoff between attempts;
    * 502/503 rejections reset the domain session and retry, at most
      ``max_resets`` times, then the error propagates.
    """

    def __init__(
        self,
        scraper: AmazonScraper,
        fetcher: DocumentFetcher,
        stop: threading.Event,
        max_resets: int | None = None,
    ) -> None:
        self.scraper = scraper
        self.fetcher = fetcher
        self._stop = stop
        self._max_resets: int = (
            Settings.MAX_RESET_RETRIES
            if max_resets is None
            else max_resets
        )

    def check(
        self, key: SearchKey, stored: Item | None,
    ) -> PriceDecision | None:
        """Return the decision for *key*, or ``None`` when nothing changed.

        ``None`` means either cancellation or that no offer price was
        found this pass; in both cases stored state stays untouched.
        """
        extraction = self._scrape(key)
        if extraction is None:
            return None
        if not extraction.prices_found:
            logger.info("%s: no prices this cycle", key)
            return None
        return decide(key, stored, extraction)

    def _scrape(self, key: SearchKey) -> Extraction | None:
        resets = 0
        backoff = Settings.TIMEOUT_BACKOFF_BASE
        while not self._stop.is_set():
            try:
                self.fetcher.ensure_session(key.domain)
                return self.scraper.scrape(key.product_id, key.domain)
            except NetworkTimeoutError as exc:
                logger.warning(
                    "%s: %s, retrying in %.0fs", key, exc, backoff,
                )
                if self._stop.wait(backoff):
                    return None
                backoff = min(backoff * 2, Settings.TIMEOUT_BACKOFF_MAX)
            except RetriableError as exc:
                # ensure_session resets it on the next attempt or cycle
                self.fetcher.invalidate(key.domain)
                if resets >= self._max_resets:
                    raise
                resets += 1
                logger.warning("%s: %s, resetting session", key, exc)
        return None
