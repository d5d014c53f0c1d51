# amazbot/scrapers/amazon_scraper.py

"""Product facts and per-tier offer prices from Amazon pages."""

import hashlib
import logging

from bs4 import BeautifulSoup, Tag

from amazbot.config.domains import DomainProfile, get_profile
from amazbot.config.settings import Settings
from amazbot.errors import LinkNotFoundError, TitleNotFoundError
from amazbot.models.extraction import Extraction
from amazbot.models.prices import PriceVector
from amazbot.scrapers.fetcher import DocumentFetcher
from amazbot.storage.page_dump import PageDumper

logger = logging.getLogger("amazbot.amazon")

# (offer block, price container) pairs: the pinned offer, then the list
_OFFER_BLOCKS: tuple[tuple[str, str], ...] = (
    ("#pinned-de-id", "#pinned-offer-top-id"),
    ("#aod-offer", "#aod-offer-price"),
)
_OFFER_HEADING = "#aod-offer-heading"
_OFFER_PRICE = ".a-offscreen"
_DELIVERY_SELECTORS: tuple[str, ...] = (
    "#ddmDeliveryMessage",
    "span.a-color-secondary.a-size-base",
)
_TITLE = "#productTitle"


def parse_price(domain: str, text: str | None) -> float | None:
    """Parse a localised price like ``1.299,00 €`` or ``£1,299.00``.

    Returns ``None`` when *text* holds no price in the domain's format.
    """
    if not text:
        return None
    profile = get_profile(domain)
    cleaned = text.replace("\u00a0", " ").replace("\u202f", " ")
    match = profile.price_pattern.search(cleaned)
    if not match:
        return None
    units = match.group(1)
    for sep in (".", ",", " "):
        units = units.replace(sep, "")
    if not units:
        return None
    cents = "00"
    if profile.price_pattern.groups > 1 and match.group(2):
        cents = match.group(2)
    return round(float(f"{units}.{cents}"), 2)


class AmazonScraper:
    """Extraction engine for Amazon product pages and offer feeds."""

    def __init__(
        self,
        fetcher: DocumentFetcher,
        dumper: PageDumper | None = None,
        max_pages: int | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.dumper = dumper or PageDumper()
        self._max_pages: int = max_pages or Settings.MAX_OFFER_PAGES

    def scrape(self, product_id: str, domain: str) -> Extraction:
        """Fetch the product page and extract title, link and prices."""
        profile = get_profile(domain)
        doc = self.fetcher.fetch(
            profile.product_url(product_id), product_id,
        )
        return self.extract(doc, domain, product_id)

    def extract(
        self,
        doc: BeautifulSoup,
        domain: str,
        product_id: str,
    ) -> Extraction:
        """Extract item facts from a product page.

        Raises :class:`TitleNotFoundError` (after dumping the page) or
        :class:`LinkNotFoundError`.  A missing price is not an error:
        the returned vector is simply all zeros.
        """
        title = ""
        for el in doc.select(_TITLE):
            title = el.get_text(strip=True)
            if title:
                break
        if not title:
            self.dumper.dump(f"{product_id}_err.html", doc)
            raise TitleNotFoundError(
                f"title not found: {product_id}.{domain}"
            )

        link = ""
        for el in doc.select('link[rel="canonical"]'):
            href = el.get("href")
            if href:
                link = str(href)
                break
        if not link:
            raise LinkNotFoundError(
                f"link not found: {product_id}.{domain}"
            )

        prices = self.fetch_offer_prices(product_id, domain)
        return Extraction(
            item_id=product_id,
            domain=domain,
            title=title,
            link=link,
            prices=prices,
        )

    def fetch_offer_prices(
        self, product_id: str, domain: str,
    ) -> PriceVector:
        """Paginate the offers feed and fold every offer into a vector.

        Stops when a page's text hashes like the previous page's or
        after the page bound, whichever comes first.
        """
        profile = get_profile(domain)
        prices = PriceVector()
        previous_digest = ""
        doc: BeautifulSoup | None = None

        for page in range(self._max_pages):
            doc = self.fetcher.fetch(
                profile.offers_url(product_id, page), product_id,
            )
            digest = hashlib.sha256(
                doc.get_text().encode("utf-8")
            ).hexdigest()
            if digest == previous_digest:
                logger.debug(
                    "[%s.%s] offers unchanged on page %d, stopping",
                    product_id,
                    domain,
                    page,
                )
                break
            previous_digest = digest
            self.extract_prices(doc, profile, prices, product_id)

        if not prices.any_found():
            if doc is not None:
                self.dumper.dump(f"err_{product_id}.{domain}.html", doc)
            logger.warning(
                "Prices not found: %s.%s", product_id, domain,
            )
            return PriceVector()

        logger.info(
            "[%s.%s] prices %s", product_id, domain, prices.to_list(),
        )
        return prices

    def extract_prices(
        self,
        doc: BeautifulSoup,
        profile: DomainProfile,
        prices: PriceVector,
        item_hint: str = "",
    ) -> PriceVector:
        """Fold the offers on one feed page into *prices* (in place)."""
        for block_sel, price_sel in _OFFER_BLOCKS:
            for block in doc.select(block_sel):
                self._fold_offer(
                    block, price_sel, profile, prices, item_hint,
                )
        return prices

    def _fold_offer(
        self,
        block: Tag,
        price_sel: str,
        profile: DomainProfile,
        prices: PriceVector,
        item_hint: str,
    ) -> None:
        heading = block.select_one(_OFFER_HEADING)
        if heading is None:
            return
        tier = profile.tier_for_heading(heading.get_text())
        if tier is None:
            return

        delivery = 0.0
        for delivery_sel in _DELIVERY_SELECTORS:
            for el in block.select(f"{price_sel} {delivery_sel}"):
                fee = parse_price(profile.domain, el.get_text(strip=True))
                if fee is not None:
                    delivery = fee
                    break

        for el in block.select(f"{price_sel} {_OFFER_PRICE}"):
            text = el.get_text()
            price = parse_price(profile.domain, text)
            if price is None:
                logger.debug(
                    "Couldn't parse price %r for %s.%s",
                    text,
                    item_hint,
                    profile.domain,
                )
                continue
            prices.offer(tier, round(price + delivery, 2))
            break
